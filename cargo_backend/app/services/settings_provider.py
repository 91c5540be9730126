"""
Settings provider.

Reads key/value settings with a Redis read-through cache. Missing or
unparsable pricing values fall back to configured defaults, so invoice
computation never fails because settings were not seeded.
"""

import logging
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from cargo_backend.app.core.config import settings
from cargo_backend.app.models.setting import Setting

logger = logging.getLogger("cargo.settings")

PRICE_PER_KG = "PRICE_PER_KG"
DOLLAR_RATE = "DOLLAR_RATE"

CACHE_PREFIX = "settings:"
# Cached marker for "no row in the table"
_ABSENT = "\x00"


class SettingsProvider:

    def __init__(self, db: AsyncSession, redis=None, ttl_seconds: int = None):
        self.db = db
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.settings_cache_ttl_seconds

    async def get(self, key: str) -> Optional[str]:
        """Setting value, or None when the key is not set."""
        cached = await self._cache_get(key)
        if cached is not None:
            return None if cached == _ABSENT else cached

        result = await self.db.execute(select(Setting.value).where(Setting.key == key))
        value = result.scalar_one_or_none()

        await self._cache_set(key, _ABSENT if value is None else value)
        return value

    async def get_float(self, key: str, default: float) -> float:
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("Setting %s has non-numeric value %r, using default %s", key, raw, default)
            return default

    async def get_pricing(self) -> Tuple[float, float]:
        """(price per kg in USD, USD exchange rate)."""
        price_per_kg = await self.get_float(PRICE_PER_KG, settings.default_price_per_kg)
        dollar_rate = await self.get_float(DOLLAR_RATE, settings.default_dollar_rate)
        return price_per_kg, dollar_rate

    # Cache failures fall through to the database

    async def _cache_get(self, key: str) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            return await self.redis.get(f"{CACHE_PREFIX}{key}")
        except Exception as e:
            logger.warning("Settings cache read failed for %s: %s", key, e)
            return None

    async def _cache_set(self, key: str, value: str):
        if self.redis is None:
            return
        try:
            await self.redis.set(f"{CACHE_PREFIX}{key}", value, ex=self.ttl_seconds)
        except Exception as e:
            logger.warning("Settings cache write failed for %s: %s", key, e)
