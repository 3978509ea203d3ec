import os
from typing import Dict, Any

from dotenv import load_dotenv

load_dotenv()

# URL базы данных из переменных окружения
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://farmtrack.sqlite3")

# Модули с моделями приложения
MODELS_MODULES = ["farmtrack.db.models"]

# Конфигурация Tortoise ORM
TORTOISE_ORM: Dict[str, Any] = {
    "connections": {
        "default": DATABASE_URL
    },
    "apps": {
        "models": {
            "models": MODELS_MODULES + ["aerich.models"],
            "default_connection": "default"
        }
    },
    "use_tz": True,
    "timezone": "UTC"
}
