"""
Сериализация конвертов событий.

encode() и decode() используются и при публикации, и при потреблении.
Версии схемы нет: неизвестные поля игнорируются, отсутствующие опциональные
получают значения по умолчанию.
"""

from __future__ import annotations

import json
from typing import Callable, Type, TypeVar

from pydantic import ValidationError

from tasktracker.config.constants import CONTENT_ENCODING
from tasktracker.messaging.models import BaseMessage
from tasktracker.shared.exceptions import MessageDecodeError, MessageEncodeError

M = TypeVar("M", bound=BaseMessage)

# Идентичность конверта обязательна на проводе, даже если у модели есть default_factory
REQUIRED_IDENTITY_FIELDS = ("MessageId", "Timestamp")


def encode(envelope: BaseMessage) -> bytes:
    """Конверт -> UTF-8 JSON. Порядок ключей фиксирован порядком полей модели."""
    try:
        return envelope.model_dump_json(by_alias=True).encode(CONTENT_ENCODING)
    except (ValueError, TypeError) as e:
        raise MessageEncodeError(
            f"Не удалось сериализовать {type(envelope).__name__}",
            original_error=e,
        ) from e


def decode(data: bytes, message_type: Type[M]) -> M:
    """
    Байты -> конверт ожидаемого типа.

    Raises:
        MessageDecodeError: невалидный UTF-8/JSON, не объект, нет обязательных полей
    """
    try:
        payload = json.loads(data.decode(CONTENT_ENCODING))
    except (UnicodeDecodeError, ValueError) as e:
        raise MessageDecodeError(
            "Тело сообщения не является JSON",
            details={"expected": message_type.__name__, "size": len(data)},
            original_error=e,
        ) from e

    if not isinstance(payload, dict):
        raise MessageDecodeError(
            "Тело сообщения не является JSON-объектом",
            details={"expected": message_type.__name__, "got": type(payload).__name__},
        )

    missing = [name for name in REQUIRED_IDENTITY_FIELDS if name not in payload]
    if missing:
        raise MessageDecodeError(
            "В конверте нет обязательных полей",
            details={"expected": message_type.__name__, "missing": missing},
        )

    try:
        return message_type.model_validate(payload)
    except ValidationError as e:
        raise MessageDecodeError(
            f"Конверт не соответствует {message_type.__name__}",
            details={"errors": e.errors(include_url=False, include_input=False)},
            original_error=e,
        ) from e


def decoder_for(message_type: Type[M]) -> Callable[[bytes], M]:
    """Функция декодирования под конкретный вариант (для регистрации подписки)."""

    def _decode(data: bytes) -> M:
        return decode(data, message_type)

    _decode.__name__ = f"decode_{message_type.__name__}"
    return _decode
