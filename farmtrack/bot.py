#!/usr/bin/env python3
import logging
import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from tortoise import Tortoise

# Импорт обработчиков
from farmtrack.handlers import (
    start,
    time_clock,
    weekly,
    export,
    soil,
    workers
)

# Импорт middleware
from farmtrack.middlewares.error_handler import ErrorHandlerMiddleware
from farmtrack.middlewares.rate_limiter import RateLimiterMiddleware

from farmtrack.core.aggregation import WeeklyHoursCalculator
from farmtrack.core.clock import Clock
from farmtrack.core.time_clock import TimeClockService
from farmtrack.db.config import MODELS_MODULES
from farmtrack.db.repository import (
    FieldRepository,
    SoilTestRepository,
    TimeBlockRepository,
    WorkerRepository,
)
from farmtrack.settings import Settings
from farmtrack.utils.export import ExportManager
from farmtrack.utils.scheduler import setup_scheduler

logger = logging.getLogger(__name__)


def register_handlers(dp: Dispatcher):
    """
    Регистрация всех обработчиков
    """
    start.register_handlers(dp)
    time_clock.register_handlers(dp)
    weekly.register_handlers(dp)
    export.register_handlers(dp)
    soil.register_handlers(dp)
    workers.register_handlers(dp)


def build_dispatcher(settings: Settings, clock: Clock) -> Dispatcher:
    """
    Создание диспетчера с сервисами и middleware

    Сервисы передаются обработчикам через данные диспетчера
    по именам аргументов.

    :param settings: Настройки приложения
    :param clock: Часы фермы
    :return: Диспетчер
    """
    time_blocks = TimeBlockRepository()
    weekly_calculator = WeeklyHoursCalculator(time_blocks, clock)

    dp = Dispatcher(
        settings=settings,
        clock=clock,
        time_blocks=time_blocks,
        workers=WorkerRepository(),
        fields=FieldRepository(),
        soil_tests=SoilTestRepository(),
        time_clock=TimeClockService(time_blocks, clock),
        daily_aggregator=weekly_calculator.daily,
        weekly_calculator=weekly_calculator,
        exporter=ExportManager(settings.export_dir, clock)
    )

    # Установка middleware
    error_handler = ErrorHandlerMiddleware(settings.admin_id)
    dp.message.outer_middleware(error_handler)
    dp.callback_query.outer_middleware(error_handler)
    rate_limiter = RateLimiterMiddleware()
    dp.message.middleware(rate_limiter)
    dp.callback_query.middleware(rate_limiter)

    register_handlers(dp)
    return dp


async def on_startup(bot: Bot, settings: Settings):
    """
    Действия при запуске бота
    """
    try:
        await bot.send_message(
            settings.admin_id,
            "🚀 Бот запущен и готов к работе!\n\n"
            f"Бот: @{(await bot.get_me()).username}\n"
            f"Часовой пояс фермы: {settings.farm_timezone}\n"
            f"Режим логирования: {settings.log_level}"
        )
    except Exception as e:
        logger.error(f"Ошибка при отправке уведомления о запуске: {e}")


async def on_shutdown(bot: Bot, settings: Settings):
    """
    Действия при остановке бота
    """
    try:
        await bot.send_message(settings.admin_id, "🔴 Бот останавливается...")
    except Exception as e:
        logger.error(f"Ошибка при отправке уведомления о выключении: {e}")


async def main():
    """
    Основная функция запуска бота
    """
    settings = Settings.from_env()

    # Настройка логирования
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    clock = Clock(settings.farm_timezone)

    # Инициализация базы данных
    await Tortoise.init(
        db_url=settings.database_url,
        modules={'models': MODELS_MODULES},
        use_tz=True,
        timezone="UTC"
    )
    await Tortoise.generate_schemas()
    logger.info("База данных инициализирована")

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = build_dispatcher(settings, clock)
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    # Инициализация планировщика задач
    scheduler = setup_scheduler(
        bot,
        settings,
        clock,
        time_blocks=dp["time_blocks"],
        workers=dp["workers"],
        weekly_calculator=dp["weekly_calculator"],
        exporter=dp["exporter"]
    )

    try:
        logger.info("Запуск в режиме long polling")
        await dp.start_polling(bot)
    finally:
        scheduler.shutdown()
        await Tortoise.close_connections()
        logger.info("Соединения с базой данных закрыты")
        await bot.session.close()
        logger.info("Бот остановлен")


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Бот остановлен по команде пользователя")


if __name__ == '__main__':
    run()
