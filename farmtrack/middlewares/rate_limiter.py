import time
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject
from aiogram.utils.markdown import text, hbold

logger = logging.getLogger(__name__)

# Команда: (количество запросов, окно в секундах)
DEFAULT_LIMITS: Dict[str, Tuple[int, int]] = {
    'clockin': (5, 60),
    'clockout': (5, 60),
    'export': (3, 60),  # выгрузка файлов тяжелее остальных команд
    'week': (10, 60),  # команда и кнопки навигации
    'soil': (10, 60),
    'default': (20, 60)
}

# Как часто, в секундах, удаляются окна неактивных пользователей
PRUNE_INTERVAL = 60


class RateLimiterMiddleware(BaseMiddleware):
    """
    Ограничение частоты команд и нажатий на кнопки

    Для каждой пары (пользователь, команда) хранится скользящее окно
    отметок времени. Кнопки считаются по префиксу callback-данных,
    поэтому листание недель делит лимит с командой /week.
    """

    def __init__(self, limits: Optional[Dict[str, Tuple[int, int]]] = None):
        super().__init__()
        self.limits = dict(limits or DEFAULT_LIMITS)
        self.limits.setdefault('default', DEFAULT_LIMITS['default'])
        self._hits: Dict[Tuple[int, str], Deque[float]] = {}
        self._last_prune = 0.0

    def bucket(self, event: TelegramObject) -> str:
        """
        Группа лимита для события

        :param event: Сообщение или callback-запрос
        :return: Название команды из таблицы лимитов или 'default'
        """
        name = None
        if isinstance(event, Message) and event.text and event.text.startswith("/"):
            name = event.text.split()[0][1:].split("@")[0].lower()
        elif isinstance(event, CallbackQuery) and event.data:
            name = event.data.split(":")[0]
        return name if name in self.limits else 'default'

    def allow(self, user_id: int, bucket: str, moment: float) -> bool:
        """
        Учёт запроса в окне

        :param user_id: ID пользователя
        :param bucket: Группа лимита
        :param moment: Время запроса в секундах
        :return: False, если окно уже заполнено
        """
        self._prune(moment)

        limit, period = self.limits[bucket]
        key = (user_id, bucket)
        hits = self._hits.get(key, deque())
        while hits and moment - hits[0] >= period:
            hits.popleft()

        if len(hits) >= limit:
            if not hits:
                self._hits.pop(key, None)
            return False

        hits.append(moment)
        self._hits[key] = hits
        return True

    def _prune(self, moment: float):
        """Удаление окон, в которых не осталось действующих отметок"""
        if moment - self._last_prune < PRUNE_INTERVAL:
            return
        self._last_prune = moment

        expired = [
            key for key, hits in self._hits.items()
            if not hits or moment - hits[-1] >= self.limits[key[1]][1]
        ]
        for key in expired:
            del self._hits[key]

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        user = getattr(event, "from_user", None)
        if user is None:
            return await handler(event, data)

        bucket = self.bucket(event)
        if self.allow(user.id, bucket, time.monotonic()):
            return await handler(event, data)

        limit, period = self.limits[bucket]
        logger.info(f"Пользователь {user.id} превысил лимит '{bucket}': {limit} за {period} с")

        if isinstance(event, CallbackQuery):
            await event.answer(f"⚠️ Не больше {limit} нажатий за {period} секунд", show_alert=True)
        elif isinstance(event, Message):
            await event.answer(
                text(
                    hbold("⚠️ Превышен лимит запросов"),
                    "",
                    f"Команда доступна {limit} раз за {period} секунд.",
                    "Повторите чуть позже.",
                    sep="\n"
                )
            )
        return True
