"""
Request dependencies for FastAPI.

Turns the bearer token into an Actor and wires the collaborators of the
tracking services (database session, notification sink, settings cache).
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.core.config import settings
from cargo_backend.app.core.exceptions import AuthenticationError
from cargo_backend.app.core.jwt import decode_access_token
from cargo_backend.app.core.redis_client import get_redis
from cargo_backend.app.core.reliability import notification_circuit_breaker
from cargo_backend.app.db.session import get_db
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.services.notification_sink import NotificationSink, TelegramNotificationSink
from cargo_backend.app.services.settings_provider import SettingsProvider

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """
    Decode the bearer token into the caller's Actor.

    Raises:
        AuthenticationError: 401 if the token is invalid or lacks identity claims
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    try:
        return Actor(
            id=payload.get("user_id"),
            role=payload.get("role"),
            branch_id=payload.get("branch_id"),
        )
    except ValidationError:
        raise AuthenticationError("Invalid token payload")


_telegram_sink = None


def get_notification_sink() -> NotificationSink:
    """Process-wide Telegram sink (shares one circuit breaker)."""
    global _telegram_sink
    if _telegram_sink is None:
        _telegram_sink = TelegramNotificationSink(
            bot_token=settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            timeout=settings.telegram_timeout_seconds,
            breaker=notification_circuit_breaker,
        )
    return _telegram_sink


async def get_settings_provider(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
) -> SettingsProvider:
    return SettingsProvider(db, redis)
