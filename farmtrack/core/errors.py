from typing import Optional


class FarmTrackError(Exception):
    """Базовое исключение приложения"""


class PersistenceFailure(FarmTrackError):
    """Ошибка чтения или записи в хранилище"""

    def __init__(self, operation: str, original: Optional[Exception] = None):
        self.operation = operation
        self.original = original
        message = f"Ошибка хранилища при операции '{operation}'"
        if original is not None:
            message += f": {original}"
        super().__init__(message)


class TimeClockError(FarmTrackError):
    """Ошибка учёта рабочего времени"""


class NoOpenBlock(TimeClockError):
    """Нет открытого блока для завершения смены"""

    def __init__(self, worker_id: int):
        self.worker_id = worker_id
        super().__init__(f"Работник {worker_id} сейчас не отмечен на смене")


class AmbiguousOpenState(TimeClockError):
    """Найдено несколько открытых блоков за один день"""

    def __init__(self, worker_id: int, block_ids):
        self.worker_id = worker_id
        self.block_ids = list(block_ids)
        super().__init__(
            f"У работника {worker_id} несколько открытых блоков: {self.block_ids}"
        )


class InvalidWorker(TimeClockError):
    """Работник не найден или деактивирован"""

    def __init__(self, worker_id: Optional[int]):
        self.worker_id = worker_id
        super().__init__(f"Работник {worker_id} недоступен для учёта времени")
