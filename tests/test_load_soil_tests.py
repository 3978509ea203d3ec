from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from farmtrack.core.errors import PersistenceFailure
from farmtrack.db import models
from farmtrack.utils.soil_import import SoilTestImporter

HEADER = "field,test_date,ph,organic_matter,phosphorus_ppm,potassium_ppm,cec,lab,notes\n"


@pytest.fixture
def log_manager():
    """Подмена менеджера логирования"""
    with patch("farmtrack.utils.soil_import.log_manager") as manager:
        manager.log_warning = AsyncMock()
        yield manager


@pytest.fixture
def write_csv(tmp_path):
    def write(*rows, header=HEADER):
        path = tmp_path / "soil.csv"
        path.write_text(header + "".join(row + "\n" for row in rows), encoding="utf-8")
        return path
    return write


async def field_names():
    return sorted(await models.Field.all().values_list("name", flat=True))


@pytest.mark.asyncio
async def test_import_valid_rows(database, soil_tests, fields, log_manager, write_csv):
    path = write_csv(
        "North,2025-05-01,6.5,3.2,22,140,11,AgriLab,Lime in autumn",
        "North,2024-04-15,6.1,2.8,18,120,10,,",
        "South,2025-05-02,7.2,1.5,8,90,6,AgriLab,",
    )

    result = await SoilTestImporter("Green Acres").import_file(path)

    assert result.loaded == 3
    assert result.skipped == []
    log_manager.log_warning.assert_not_called()

    assert await field_names() == ["North", "South"]
    assert await models.Lab.all().count() == 1

    north = next(f for f in await fields.list_all() if f.name == "North")
    tests = await soil_tests.list_for_field(north.id)
    assert [t.test_date for t in tests] == [date(2024, 4, 15), date(2025, 5, 1)]
    assert tests[0].lab_id is None
    assert tests[0].notes is None
    assert tests[1].ph == 6.5
    assert tests[1].lab_id is not None
    assert tests[1].notes == "Lime in autumn"


@pytest.mark.asyncio
async def test_invalid_row_is_skipped_with_warning(database, log_manager, write_csv):
    path = write_csv(
        "North,2025-05-01,6.5,3.2,22,140,11,,",
        "West,2025-05-01,99,3.2,22,140,11,NewLab,",
    )

    result = await SoilTestImporter("Green Acres").import_file(path)

    assert result.loaded == 1
    assert result.skipped == [3]
    # Строка с ошибкой не оставляет поле и лабораторию
    assert await field_names() == ["North"]
    assert await models.Lab.all().count() == 0

    message, context = log_manager.log_warning.call_args.args
    assert "строка 3" in message
    assert context["errors"][0]["loc"] == ("ph",)


@pytest.mark.asyncio
async def test_bad_date_skips_only_its_row(database, log_manager, write_csv):
    path = write_csv(
        "North,2025-05-01,6.5,3.2,22,140,11,,",
        "South,not-a-date,6.5,3.2,22,140,11,,",
        "East,2025-05-03,6.0,3.0,20,150,12,,",
    )

    result = await SoilTestImporter("Green Acres").import_file(path)

    assert result.loaded == 2
    assert result.skipped == [3]
    assert await field_names() == ["East", "North"]


@pytest.mark.asyncio
async def test_blank_field_name_is_skipped(database, log_manager, write_csv):
    path = write_csv(
        ",2025-05-01,6.5,3.2,22,140,11,,",
        "   ,2025-05-01,6.5,3.2,22,140,11,,",
    )

    result = await SoilTestImporter("Green Acres").import_file(path)

    assert result.loaded == 0
    assert result.skipped == [2, 3]
    assert await field_names() == []
    assert await models.SoilTest.all().count() == 0


@pytest.mark.asyncio
async def test_failed_write_rolls_back_row(database, log_manager, write_csv):
    path = write_csv("North,2025-05-01,6.5,3.2,22,140,11,AgriLab,")
    repository = MagicMock()
    repository.create = AsyncMock(side_effect=PersistenceFailure("create_soil_test"))

    result = await SoilTestImporter("Green Acres", repository).import_file(path)

    assert result.loaded == 0
    assert result.skipped == [2]
    assert await field_names() == []
    assert await models.Lab.all().count() == 0


@pytest.mark.asyncio
async def test_missing_columns(database, write_csv):
    path = write_csv("North,2025-05-01,6.5", header="field,test_date,ph\n")

    with pytest.raises(ValueError, match="organic_matter"):
        await SoilTestImporter("Green Acres").import_file(path)
