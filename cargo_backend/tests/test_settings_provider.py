"""
Settings provider tests: defaults, Redis read-through, cache outages.
"""

import pytest
from cargo_backend.app.models.setting import Setting
from cargo_backend.app.services.settings_provider import CACHE_PREFIX, DOLLAR_RATE, PRICE_PER_KG, SettingsProvider


@pytest.mark.asyncio
async def test_pricing_defaults_when_unset(db_session):
    assert await SettingsProvider(db_session).get_pricing() == (4.0, 500.0)


@pytest.mark.asyncio
async def test_reads_through_cache(db_session, redis_client_session):
    db_session.add(Setting(key=PRICE_PER_KG, value="6.5"))
    await db_session.commit()
    provider = SettingsProvider(db_session, redis_client_session)

    assert await provider.get(PRICE_PER_KG) == "6.5"
    assert redis_client_session.store[f"{CACHE_PREFIX}{PRICE_PER_KG}"] == "6.5"

    # Served from cache even after the row changes
    setting = await db_session.get(Setting, PRICE_PER_KG)
    setting.value = "7"
    await db_session.commit()
    assert await provider.get_float(PRICE_PER_KG, 4.0) == 6.5

    # Expired entry is read again from the database
    del redis_client_session.store[f"{CACHE_PREFIX}{PRICE_PER_KG}"]
    assert await provider.get_float(PRICE_PER_KG, 4.0) == 7.0


@pytest.mark.asyncio
async def test_missing_key_is_cached_as_absent(db_session, redis_client_session):
    provider = SettingsProvider(db_session, redis_client_session)

    assert await provider.get(DOLLAR_RATE) is None
    assert await provider.get(DOLLAR_RATE) is None
    assert f"{CACHE_PREFIX}{DOLLAR_RATE}" in redis_client_session.store


@pytest.mark.asyncio
async def test_redis_outage_falls_back_to_database(db_session, redis_client_session):
    db_session.add(Setting(key=DOLLAR_RATE, value="480"))
    await db_session.commit()
    redis_client_session.fail = True

    provider = SettingsProvider(db_session, redis_client_session)
    assert await provider.get_pricing() == (4.0, 480.0)
