import os
import json
import logging
import traceback
from collections import Counter, deque
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

# Журнал -> имя файла в директории логов
LOG_FILES = {
    "app": "app.log",
    "errors": "error.log",
    "access": "access.log",
    "timeclock": "timeclock.log",
}

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SHORT_FORMAT = "%(asctime)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogManager:
    """
    Менеджер файловых журналов бота

    Ведёт четыре журнала: общий, ошибок (записи в JSON), обращений к боту
    и отметок рабочего времени. Журналы обращений и отметок не дублируются
    в корневой логгер.
    """

    def __init__(
        self,
        logs_dir: Optional[Path] = None,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        history_size: int = 10
    ):
        """
        :param logs_dir: Директория для файлов логов
        :param max_bytes: Размер файла до ротации
        :param backup_count: Количество архивных файлов
        :param history_size: Сколько последних ошибок держать в памяти
        """
        self.logs_dir = Path(logs_dir or os.getenv("LOG_DIR", "logs"))
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self.backup_count = backup_count

        self.files: Dict[str, Path] = {name: self.logs_dir / filename for name, filename in LOG_FILES.items()}
        self.loggers: Dict[str, logging.Logger] = {}
        for name in LOG_FILES:
            self._attach(name)

        self.counters: Counter = Counter()
        self.recent_errors: deque = deque(maxlen=history_size)

    def _attach(self, name: str):
        """Подключение файла журнала к логгеру farmtrack.<name>"""
        named_logger = logging.getLogger(f"farmtrack.{name}")

        # При повторной настройке старые файлы больше не используются
        for handler in list(named_logger.handlers):
            named_logger.removeHandler(handler)
            handler.close()

        level = logging.ERROR if name == "errors" else logging.INFO
        handler = RotatingFileHandler(
            self.files[name],
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding="utf-8"
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(
            SHORT_FORMAT if name in ("access", "timeclock") else DETAILED_FORMAT,
            DATE_FORMAT
        ))

        named_logger.setLevel(level)
        named_logger.addHandler(handler)
        named_logger.propagate = name not in ("access", "timeclock")
        self.loggers[name] = named_logger

    async def log_request(self, user_id: Optional[int], command: str, processing_time: float):
        """
        Запись обращения к боту

        :param user_id: ID пользователя Telegram
        :param command: Команда или префикс callback-данных
        :param processing_time: Время обработки в секундах
        """
        self.counters["requests"] += 1
        self.loggers["access"].info(
            f"User: {user_id}, Command: {command}, "
            f"Processing Time: {processing_time:.3f}s"
        )

    async def log_clock_event(self, worker_id: int, action: str, block_number: int, moment: datetime):
        """
        Запись отметки прихода или ухода

        :param worker_id: ID работника
        :param action: clock_in или clock_out
        :param block_number: Номер блока за день
        :param moment: Время отметки
        """
        self.counters["clock_events"] += 1
        self.loggers["timeclock"].info(
            f"Worker: {worker_id}, Action: {action}, Block: {block_number}, At: {moment.isoformat()}"
        )

    async def log_error(
        self,
        error: Exception,
        user_id: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Запись ошибки с трассировкой

        :param error: Исключение
        :param user_id: ID пользователя, если ошибка связана с запросом
        :param context: Обработчик, команда и другие подробности
        """
        self.counters["errors"] += 1

        record = {
            "timestamp": datetime.now().isoformat(),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "user_id": user_id,
            "context": context
        }
        self.recent_errors.append(record)
        self.loggers["errors"].error(json.dumps(record, ensure_ascii=False, indent=2, default=str))

    async def log_warning(self, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Запись предупреждения в общий журнал

        :param message: Текст предупреждения
        :param context: Подробности
        """
        self.counters["warnings"] += 1
        self.loggers["app"].warning(json.dumps(
            {"timestamp": datetime.now().isoformat(), "message": message, "context": context},
            ensure_ascii=False,
            default=str
        ))

    def get_statistics(self) -> Dict[str, Any]:
        """Счётчики журналов и пять последних ошибок"""
        return {
            "total_requests": self.counters["requests"],
            "clock_events": self.counters["clock_events"],
            "error_count": self.counters["errors"],
            "warning_count": self.counters["warnings"],
            "last_errors": list(self.recent_errors)[-5:]
        }


log_manager = LogManager()
