from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class Worker:
    """Снимок работника"""
    id: int
    name: str
    is_active: bool = True
    position: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    hire_date: Optional[date] = None
    telegram_id: Optional[int] = None


@dataclass(frozen=True)
class TimeBlock:
    """Снимок одного интервала работы между отметками прихода и ухода"""
    id: int
    worker_id: int
    work_date: date
    block_number: int
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    hours_worked: float = 0.0
    is_active: bool = True
    week_number: int = 0
    year: int = 0

    @property
    def is_open(self) -> bool:
        return self.is_active and self.clock_out_time is None

    def live_hours(self, now: datetime) -> float:
        """Отработанные часы с учётом незавершённого блока"""
        if not self.is_open:
            return self.hours_worked
        elapsed = (now - self.clock_in_time).total_seconds() / 3600.0
        return max(0.0, elapsed)


@dataclass(frozen=True)
class Field:
    """Снимок поля"""
    id: int
    farm_id: int
    name: str
    acres: Optional[float] = None


@dataclass(frozen=True)
class SoilTest:
    """Снимок анализа почвы"""
    id: int
    field_id: int
    test_date: date
    ph: float
    organic_matter: float
    phosphorus_ppm: float
    potassium_ppm: float
    cec: float
    lab_id: Optional[int] = None
    notes: Optional[str] = None
