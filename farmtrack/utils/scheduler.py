import logging
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from farmtrack.core.aggregation import WeeklyHoursCalculator
from farmtrack.core.clock import Clock
from farmtrack.db.repository import TimeBlockRepository, WorkerRepository
from farmtrack.settings import Settings
from farmtrack.utils.export import ExportManager
from farmtrack.utils.formatting import format_overtime_report, format_time_block

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Планировщик фоновых задач"""

    def __init__(
        self,
        bot: Bot,
        settings: Settings,
        clock: Clock,
        time_blocks: Optional[TimeBlockRepository] = None,
        workers: Optional[WorkerRepository] = None,
        weekly_calculator: Optional[WeeklyHoursCalculator] = None,
        exporter: Optional[ExportManager] = None
    ):
        """
        Инициализация планировщика

        :param bot: Экземпляр бота для отправки уведомлений
        :param settings: Настройки приложения
        :param clock: Часы фермы, задают часовой пояс расписания
        """
        self.bot = bot
        self.settings = settings
        self.clock = clock
        self.time_blocks = time_blocks or TimeBlockRepository()
        self.workers = workers or WorkerRepository()
        self.weekly_calculator = weekly_calculator or WeeklyHoursCalculator(self.time_blocks, clock)
        self.exporter = exporter
        self.scheduler = AsyncIOScheduler(timezone=clock.tz)
        self._setup_jobs()

    def _setup_jobs(self):
        """Настройка фоновых задач"""
        # Ежедневные напоминания о незакрытых сменах
        self.scheduler.add_job(
            self.remind_open_blocks,
            CronTrigger(hour=self.settings.reminder_hour, timezone=self.clock.tz),
            id='remind_open_blocks',
            replace_existing=True
        )

        # Еженедельный отчет о сверхурочных
        self.scheduler.add_job(
            self.send_overtime_report,
            CronTrigger(day_of_week='sun', hour=23, timezone=self.clock.tz),  # Каждое воскресенье в 23:00
            id='overtime_report',
            replace_existing=True
        )

        if self.exporter is not None:
            self.scheduler.add_job(
                self.exporter.cleanup_old_exports,
                CronTrigger(hour=3, timezone=self.clock.tz),  # Каждый день в 03:00
                id='cleanup_old_exports',
                replace_existing=True
            )

    def start(self):
        """Запуск планировщика"""
        self.scheduler.start()
        logger.info("Планировщик задач запущен")

    def shutdown(self):
        """Остановка планировщика"""
        self.scheduler.shutdown()
        logger.info("Планировщик задач остановлен")

    async def remind_open_blocks(self) -> int:
        """
        Напоминание работникам, не отметившим уход

        :return: Количество отправленных напоминаний
        """
        sent = 0
        for block in await self.time_blocks.open_blocks_on(self.clock.today()):
            worker = await self.workers.get(block.worker_id)
            if worker is None or worker.telegram_id is None:
                continue

            message = (
                f"⚠️ У вас незакрытая смена:\n"
                f"🕒 {format_time_block(block, self.clock)}\n"
                f"Не забудьте отметить уход командой /clockout"
            )
            try:
                await self.bot.send_message(worker.telegram_id, message)
                sent += 1
                logger.info(f"Отправлено напоминание работнику {worker.id}")
            except TelegramAPIError as e:
                logger.error(f"Ошибка при отправке напоминания работнику {worker.id}: {e}")
        return sent

    async def send_overtime_report(self):
        """Отправка администратору отчета о сверхурочных за текущую неделю"""
        active_workers = await self.workers.list_active()
        report = await self.weekly_calculator.overtime_report(active_workers, self.clock.today())

        try:
            await self.bot.send_message(
                self.settings.admin_id,
                format_overtime_report(report, active_workers)
            )
            logger.info(f"Отправлен отчет о сверхурочных за неделю с {report.week_start}")
        except TelegramAPIError as e:
            logger.error(f"Ошибка при отправке отчета о сверхурочных: {e}")


def setup_scheduler(bot: Bot, settings: Settings, clock: Clock, **components) -> TaskScheduler:
    """
    Создание и запуск планировщика

    :param bot: Экземпляр бота
    :param settings: Настройки приложения
    :param clock: Часы фермы
    :param components: Репозитории и сервисы для задач
    :return: Запущенный планировщик
    """
    scheduler = TaskScheduler(bot, settings, clock, **components)
    scheduler.start()
    return scheduler
