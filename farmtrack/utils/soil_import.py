import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
from pydantic import ValidationError
from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from farmtrack.core.errors import PersistenceFailure
from farmtrack.db import models
from farmtrack.db.repository import SoilTestRepository
from farmtrack.utils.logger import log_manager
from farmtrack.utils.validators import FieldInput, SoilTestDraft

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    "field", "test_date", "ph", "organic_matter",
    "phosphorus_ppm", "potassium_ppm", "cec"
]
MEASUREMENTS = ["ph", "organic_matter", "phosphorus_ppm", "potassium_ppm", "cec"]


@dataclass
class ImportResult:
    """Итог загрузки файла"""
    loaded: int = 0
    skipped: List[int] = field(default_factory=list)


def _cell(row: Dict[str, Any], column: str) -> Optional[str]:
    value = (row.get(column) or "").strip()
    return value or None


class SoilTestImporter:
    """
    Загрузка результатов лабораторных анализов из CSV

    Колонки: field, test_date, ph, organic_matter, phosphorus_ppm,
    potassium_ppm, cec и необязательные lab, notes. Все значения читаются
    как строки и разбираются моделями pydantic построчно: строка с ошибкой
    пропускается с предупреждением и ничего не создаёт в базе. Поля и
    лаборатории создаются при первой встрече вместе с анализом в одной
    транзакции.
    """

    def __init__(self, farm_name: str, repository: Optional[SoilTestRepository] = None):
        """
        :param farm_name: Ферма, на которой создаются новые поля
        :param repository: Хранилище анализов
        """
        self.farm_name = farm_name
        self.repository = repository or SoilTestRepository()

    @staticmethod
    def parse_row(row: Dict[str, Any]) -> Tuple[FieldInput, SoilTestDraft]:
        """
        Проверка строки файла

        :param row: Значения строки по названиям колонок
        :return: Поле и черновик анализа
        :raises ValidationError: Если строка не проходит проверку
        """
        field_input = FieldInput(name=_cell(row, "field") or "")
        draft = SoilTestDraft(
            test_date=_cell(row, "test_date"),
            notes=_cell(row, "notes"),
            **{column: _cell(row, column) for column in MEASUREMENTS}
        )
        return field_input, draft

    async def import_file(self, path: Union[str, Path]) -> ImportResult:
        """
        Загрузка файла

        :param path: Путь к CSV файлу
        :return: Количество загруженных анализов и номера пропущенных строк
        :raises ValueError: Если в файле нет обязательных колонок
        """
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
        if missing:
            raise ValueError(f"В файле нет колонок: {', '.join(missing)}")

        farm, _ = await models.Farm.get_or_create(name=self.farm_name)
        result = ImportResult()

        # Строка 1 - заголовок
        for number, row in enumerate(df.to_dict("records"), start=2):
            try:
                field_input, draft = self.parse_row(row)
            except ValidationError as e:
                await self._skip(result, number, path, e.errors(include_url=False))
                continue

            lab_name = _cell(row, "lab")
            try:
                async with in_transaction():
                    field_row, _ = await models.Field.get_or_create(farm=farm, name=field_input.name)
                    if lab_name:
                        lab, _ = await models.Lab.get_or_create(name=lab_name)
                        draft = draft.model_copy(update={"lab_id": lab.id})
                    await self.repository.create(field_row.id, draft)
            except (BaseORMException, PersistenceFailure) as e:
                await self._skip(result, number, path, [str(e)])
                continue

            result.loaded += 1

        logger.info(
            f"Загружено анализов из {path}: {result.loaded}, "
            f"пропущено строк: {len(result.skipped)}"
        )
        return result

    @staticmethod
    async def _skip(result: ImportResult, number: int, path: Union[str, Path], errors: List[Any]):
        result.skipped.append(number)
        logger.warning(f"Строка {number} пропущена: {len(errors)} ошибок проверки")
        await log_manager.log_warning(
            f"Анализ почвы не загружен: строка {number}",
            {"file": str(path), "errors": errors}
        )
