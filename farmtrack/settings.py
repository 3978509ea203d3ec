import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Настройки приложения из переменных окружения"""
    bot_token: str
    admin_id: int
    database_url: str = "sqlite://farmtrack.sqlite3"
    farm_timezone: str = "UTC"
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    export_dir: Path = Path("exports")
    reminder_hour: int = 20

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Загрузка настроек из окружения и файла .env

        :return: Настройки
        :raises ValueError: Если не заданы обязательные переменные
        """
        load_dotenv()

        bot_token = os.getenv("BOT_TOKEN")
        admin_id = os.getenv("ADMIN_ID")

        # Проверка обязательных переменных
        if not bot_token:
            raise ValueError("Не задан BOT_TOKEN в переменных окружения")
        if not admin_id:
            raise ValueError("Не задан ADMIN_ID в переменных окружения")

        return cls(
            bot_token=bot_token,
            admin_id=int(admin_id),
            database_url=os.getenv("DATABASE_URL", "sqlite://farmtrack.sqlite3"),
            farm_timezone=os.getenv("FARM_TIMEZONE", "UTC"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            export_dir=Path(os.getenv("EXPORT_DIR", "exports")),
            reminder_hour=int(os.getenv("REMINDER_HOUR", "20"))
        )
