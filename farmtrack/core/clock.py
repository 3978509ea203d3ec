from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo


class Clock:
    """Источник текущего времени в часовом поясе фермы"""

    def __init__(self, tz: Union[str, tzinfo] = "UTC"):
        """
        Инициализация часов

        :param tz: Название зоны IANA или объект tzinfo
        """
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def to_local(self, value: datetime) -> datetime:
        """
        Перевод момента времени в часовой пояс фермы

        Наивные значения считаются записанными в UTC.
        """
        if value.tzinfo is None:
            value = value.replace(tzinfo=ZoneInfo("UTC"))
        return value.astimezone(self.tz)

    def local_date(self, value: Union[date, datetime]) -> date:
        """Календарный день фермы для даты или момента времени"""
        if isinstance(value, datetime):
            return self.to_local(value).date()
        return value

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, datetime.min.time(), tzinfo=self.tz)


class FrozenClock(Clock):
    """Часы с ручным управлением временем"""

    def __init__(self, current: datetime, tz: Optional[Union[str, tzinfo]] = None):
        if tz is None:
            tz = current.tzinfo or "UTC"
        super().__init__(tz)
        self._current = self._localize(current)

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def now(self) -> datetime:
        return self._current

    def set(self, value: datetime) -> None:
        self._current = self._localize(value)

    def advance(self, **kwargs) -> datetime:
        """
        Сдвиг времени вперёд

        :param kwargs: Аргументы timedelta (hours=4, minutes=30, ...)
        :return: Новое текущее время
        """
        self._current = self._current + timedelta(**kwargs)
        return self._current
