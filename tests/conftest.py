import os
import tempfile
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

# Логи и выгрузки тестов пишутся во временные директории
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="farmtrack_logs_"))
os.environ.setdefault("EXPORT_DIR", tempfile.mkdtemp(prefix="farmtrack_exports_"))

from tortoise import Tortoise

from farmtrack.core.clock import FrozenClock
from farmtrack.db.config import MODELS_MODULES
from farmtrack.db.models import Farm
from farmtrack.db.repository import (
    FieldRepository,
    SoilTestRepository,
    TimeBlockRepository,
    WorkerRepository,
)
from farmtrack.utils.validators import WorkerDraft

UTC = ZoneInfo("UTC")


@pytest.fixture
async def database():
    """Фикстура для базы данных в памяти"""
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": MODELS_MODULES},
        use_tz=True,
        timezone="UTC"
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def clock():
    """Часы, остановленные в понедельник 13.10.2025 в 07:00 UTC"""
    return FrozenClock(datetime(2025, 10, 13, 7, 0, tzinfo=UTC))


@pytest.fixture
def time_blocks():
    return TimeBlockRepository()


@pytest.fixture
def workers():
    return WorkerRepository()


@pytest.fixture
def fields():
    return FieldRepository()


@pytest.fixture
def soil_tests():
    return SoilTestRepository()


@pytest.fixture
async def worker(database, workers):
    """Фикстура для создания тестового работника"""
    return await workers.create(WorkerDraft(name="Alice", position="Picker", telegram_id=111))


@pytest.fixture
async def other_worker(database, workers):
    return await workers.create(WorkerDraft(name="Bob", telegram_id=222))


@pytest.fixture
async def farm(database):
    return await Farm.create(name="Green Acres")


def _make_message(text: str = "/start", user_id: int = 111, full_name: str = "Alice"):
    message = MagicMock()
    message.text = text
    message.from_user.id = user_id
    message.from_user.full_name = full_name
    message.chat.id = user_id
    message.reply = AsyncMock()
    message.answer = AsyncMock()
    message.answer_document = AsyncMock()
    message.answer_photo = AsyncMock()
    return message


def _make_callback(data: str, user_id: int = 111):
    callback = MagicMock()
    callback.data = data
    callback.from_user.id = user_id
    callback.answer = AsyncMock()
    callback.message = _make_message(user_id=user_id)
    callback.message.edit_text = AsyncMock()
    return callback


@pytest.fixture
def make_message():
    """Фабрика сообщений Telegram с асинхронными методами ответа"""
    return _make_message


@pytest.fixture
def make_callback():
    """Фабрика callback-запросов с сообщением для редактирования"""
    return _make_callback
