from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from farmtrack.core.entities import Worker, SoilTest


class WorkerDraft(BaseModel):
    """Редактируемые данные работника"""
    name: str = Field(..., min_length=1, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    hire_date: Optional[date] = None
    telegram_id: Optional[int] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Валидация имени работника"""
        v = v.strip()
        if not v:
            raise ValueError("Имя работника не может быть пустым")
        return v

    @field_validator('position', 'phone', 'email')
    @classmethod
    def blank_to_none(cls, v):
        """Пустые строки сохраняются как отсутствующее значение"""
        if v is not None:
            v = v.strip()
        return v or None

    @classmethod
    def from_snapshot(cls, worker: Worker) -> "WorkerDraft":
        """Черновик для редактирования существующего работника"""
        return cls(
            name=worker.name,
            position=worker.position,
            phone=worker.phone,
            email=worker.email,
            hire_date=worker.hire_date,
            telegram_id=worker.telegram_id
        )


class SoilTestDraft(BaseModel):
    """Редактируемые данные анализа почвы"""
    test_date: date
    ph: float = Field(..., ge=0, le=14)
    organic_matter: float = Field(..., ge=0, le=100)
    phosphorus_ppm: float = Field(..., ge=0)
    potassium_ppm: float = Field(..., ge=0)
    cec: float = Field(..., ge=0)
    lab_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator('ph', 'organic_matter', 'phosphorus_ppm', 'potassium_ppm', 'cec')
    @classmethod
    def round_measurement(cls, v):
        """Показатели лаборатории хранятся с точностью до сотых"""
        return round(v, 2)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v):
        if v is not None:
            v = v.strip()
        return v or None

    @classmethod
    def from_snapshot(cls, soil_test: SoilTest) -> "SoilTestDraft":
        """Черновик для редактирования существующего анализа"""
        return cls(
            test_date=soil_test.test_date,
            ph=soil_test.ph,
            organic_matter=soil_test.organic_matter,
            phosphorus_ppm=soil_test.phosphorus_ppm,
            potassium_ppm=soil_test.potassium_ppm,
            cec=soil_test.cec,
            lab_id=soil_test.lab_id,
            notes=soil_test.notes
        )


class FieldInput(BaseModel):
    """Модель для валидации входных данных поля"""
    name: str = Field(..., min_length=1, max_length=100)
    acres: Optional[float] = Field(None, ge=0)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Валидация названия поля"""
        v = v.strip()
        if not v:
            raise ValueError("Название поля не может быть пустым")
        return v
