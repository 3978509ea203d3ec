from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        -- Фермы, поля и лаборатории
        CREATE TABLE IF NOT EXISTS "farms" (
            "id" SERIAL PRIMARY KEY,
            "name" VARCHAR(100) NOT NULL,
            "address" VARCHAR(255),
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS "fields" (
            "id" SERIAL PRIMARY KEY,
            "farm_id" INTEGER NOT NULL REFERENCES "farms" ("id") ON DELETE CASCADE,
            "name" VARCHAR(100) NOT NULL,
            "acres" DOUBLE PRECISION,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS "idx_fields_farm_id" ON "fields" ("farm_id");

        CREATE TABLE IF NOT EXISTS "labs" (
            "id" SERIAL PRIMARY KEY,
            "name" VARCHAR(100) NOT NULL,
            "phone" VARCHAR(50),
            "email" VARCHAR(100)
        );

        -- Работники
        CREATE TABLE IF NOT EXISTS "workers" (
            "id" SERIAL PRIMARY KEY,
            "name" VARCHAR(100) NOT NULL,
            "position" VARCHAR(100),
            "phone" VARCHAR(50),
            "email" VARCHAR(100),
            "hire_date" DATE,
            "is_active" BOOLEAN NOT NULL DEFAULT TRUE,
            "telegram_id" BIGINT UNIQUE,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Блоки рабочего времени
        CREATE TABLE IF NOT EXISTS "time_blocks" (
            "id" SERIAL PRIMARY KEY,
            "worker_id" INTEGER NOT NULL REFERENCES "workers" ("id") ON DELETE CASCADE,
            "work_date" DATE NOT NULL,
            "block_number" SMALLINT NOT NULL,
            "clock_in_time" TIMESTAMPTZ NOT NULL,
            "clock_out_time" TIMESTAMPTZ,
            "hours_worked" DOUBLE PRECISION NOT NULL DEFAULT 0,
            "is_active" BOOLEAN NOT NULL DEFAULT TRUE,
            "week_number" SMALLINT NOT NULL,
            "year" SMALLINT NOT NULL,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT "uid_time_blocks_worker_day_block" UNIQUE ("worker_id", "work_date", "block_number")
        );
        CREATE INDEX IF NOT EXISTS "idx_time_blocks_work_date" ON "time_blocks" ("work_date");
        CREATE INDEX IF NOT EXISTS "idx_time_blocks_worker_id" ON "time_blocks" ("worker_id");

        -- Анализы почвы
        CREATE TABLE IF NOT EXISTS "soil_tests" (
            "id" SERIAL PRIMARY KEY,
            "field_id" INTEGER NOT NULL REFERENCES "fields" ("id") ON DELETE CASCADE,
            "lab_id" INTEGER REFERENCES "labs" ("id") ON DELETE SET NULL,
            "test_date" DATE NOT NULL,
            "ph" DOUBLE PRECISION NOT NULL,
            "organic_matter" DOUBLE PRECISION NOT NULL,
            "phosphorus_ppm" DOUBLE PRECISION NOT NULL,
            "potassium_ppm" DOUBLE PRECISION NOT NULL,
            "cec" DOUBLE PRECISION NOT NULL,
            "notes" TEXT,
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS "idx_soil_tests_field_date" ON "soil_tests" ("field_id", "test_date");
    """


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        DROP TABLE IF EXISTS "soil_tests";
        DROP TABLE IF EXISTS "time_blocks";
        DROP TABLE IF EXISTS "workers";
        DROP TABLE IF EXISTS "labs";
        DROP TABLE IF EXISTS "fields";
        DROP TABLE IF EXISTS "farms";
    """
