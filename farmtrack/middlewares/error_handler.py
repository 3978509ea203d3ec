import time
import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, Optional

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import CallbackQuery, Message, TelegramObject
from aiogram.utils.markdown import text, hbold, hcode
from aiogram.utils.text_decorations import html_decoration

from farmtrack.core.errors import PersistenceFailure
from farmtrack.utils.logger import log_manager

logger = logging.getLogger(__name__)


def _command_of(event: TelegramObject) -> str:
    if isinstance(event, Message) and event.text and event.text.startswith("/"):
        return event.text.split()[0][1:].split("@")[0]
    if isinstance(event, CallbackQuery) and event.data:
        return event.data.split(":")[0]
    return "message"


class ErrorHandlerMiddleware(BaseMiddleware):
    """Middleware для обработки ошибок и учёта времени обработки запросов"""

    def __init__(self, admin_id: Optional[int] = None):
        """
        :param admin_id: Telegram ID администратора для уведомлений об ошибках
        """
        super().__init__()
        self.admin_id = admin_id

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        """
        Обработка ошибок во время выполнения хендлеров

        :param handler: Обработчик события
        :param event: Событие (сообщение, callback и т.д.)
        :param data: Дополнительные данные
        :return: Результат обработки
        """
        user = getattr(event, "from_user", None)
        user_id = user.id if user else None
        command = _command_of(event)
        started = time.perf_counter()

        try:
            return await handler(event, data)
        except Exception as e:
            context = {
                "handler": getattr(handler, "__name__", str(handler)),
                "event_type": type(event).__name__,
                "command": command
            }
            if isinstance(event, Message):
                context.update({
                    "chat_id": event.chat.id,
                    "message_text": event.text
                })

            await log_manager.log_error(e, user_id=user_id, context=context)

            lines = [
                hbold("❌ Произошла ошибка"),
                "",
                "К сожалению, произошла ошибка при обработке вашего запроса."
            ]
            if isinstance(e, PersistenceFailure):
                lines.append("Данные не сохранены. Попробуйте повторить действие через минуту.")
            else:
                lines.append("Пожалуйста, попробуйте позже или обратитесь к администратору.")
            lines.extend(["", f"Описание ошибки: {html_decoration.quote(str(e))}"])
            error_text = text(*lines, sep="\n")

            if isinstance(event, Message):
                await event.answer(error_text)
            elif isinstance(event, CallbackQuery):
                await event.answer("❌ Произошла ошибка", show_alert=True)
                if event.message:
                    await event.message.answer(error_text)

            await self._notify_admin(e, data, user_id, command)

            # Возвращаем True, чтобы предотвратить дальнейшую обработку ошибки
            return True
        finally:
            await log_manager.log_request(user_id, command, time.perf_counter() - started)

    async def _notify_admin(self, error: Exception, data: Dict[str, Any], user_id: Optional[int], command: str):
        """Отправка уведомления администратору"""
        bot = data.get("bot")
        if not self.admin_id or bot is None:
            return

        admin_error_text = text(
            hbold("🔴 Ошибка в боте"),
            "",
            f"Пользователь: {user_id}",
            f"Команда: {html_decoration.quote(command)}",
            "",
            "Стек ошибки:",
            hcode("".join(traceback.format_exception(type(error), error, error.__traceback__))[:3000]),
            sep="\n"
        )
        try:
            await bot.send_message(self.admin_id, admin_error_text)
        except TelegramAPIError as send_err:
            logger.error(f"Не удалось отправить уведомление администратору: {send_err}")
