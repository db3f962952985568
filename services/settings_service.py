"""
Settings Store - runtime key/value configuration

Prices and provider service ids live in the settings table so admins can
change them without a restart. Every pricing or order decision reads them
fresh; nothing is cached.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from models import Setting, ServiceKind
from utils.constants import SettingKeys, PRICE_SETTING_BY_SERVICE, SERVICE_ID_SETTING_BY_SERVICE

logger = logging.getLogger(__name__)


def default_settings() -> dict:
    """Values seeded at startup when a key is missing"""
    return {
        SettingKeys.PRICE_LIKES_PER_1K: str(Config.DEFAULT_PRICE_LIKES_PER_1K),
        SettingKeys.PRICE_VIEWS_PER_1K: str(Config.DEFAULT_PRICE_VIEWS_PER_1K),
        SettingKeys.SERVICE_ID_LIKES: str(Config.DEFAULT_SERVICE_ID_LIKES),
        SettingKeys.SERVICE_ID_VIEWS: str(Config.DEFAULT_SERVICE_ID_VIEWS),
        SettingKeys.GROUP_CHAT_ID: str(Config.GROUP_CHAT_ID) if Config.GROUP_CHAT_ID else None,
    }


class SettingsService:
    """Accessors over the settings table"""

    @staticmethod
    async def get(session: AsyncSession, key: str) -> Optional[str]:
        result = await session.execute(select(Setting.value).where(Setting.key == key))
        return result.scalar_one_or_none()

    @staticmethod
    async def set(session: AsyncSession, key: str, value) -> None:
        """Upsert a setting"""
        setting = await session.get(Setting, key)
        stored = None if value is None else str(value)
        if setting is None:
            session.add(Setting(key=key, value=stored))
        else:
            setting.value = stored
        await session.flush()
        logger.info(f"⚙️ SETTING_UPDATED: {key}={stored}")

    @staticmethod
    async def seed_defaults(session: AsyncSession) -> int:
        """Insert default settings that do not exist yet, returns how many were added"""
        added = 0
        for key, value in default_settings().items():
            if await session.get(Setting, key) is None:
                session.add(Setting(key=key, value=value))
                added += 1
        await session.flush()
        if added:
            logger.info(f"✅ Seeded {added} default settings")
        return added

    @staticmethod
    async def get_price_per_1k(session: AsyncSession, service: ServiceKind) -> Decimal:
        """Current price per 1000 units, falling back to the configured default"""
        fallback = (
            Config.DEFAULT_PRICE_LIKES_PER_1K if service == ServiceKind.LIKES
            else Config.DEFAULT_PRICE_VIEWS_PER_1K
        )
        raw = await SettingsService.get(session, PRICE_SETTING_BY_SERVICE[service])
        if not raw:
            return fallback
        try:
            price = Decimal(raw)
        except InvalidOperation:
            logger.warning(f"⚠️ Invalid price setting for {service.value}: {raw!r} - using default")
            return fallback
        return price if price > 0 else fallback

    @staticmethod
    async def get_provider_service_id(session: AsyncSession, service: ServiceKind) -> int:
        """Provider-side service id for a service kind"""
        fallback = (
            Config.DEFAULT_SERVICE_ID_LIKES if service == ServiceKind.LIKES
            else Config.DEFAULT_SERVICE_ID_VIEWS
        )
        raw = await SettingsService.get(session, SERVICE_ID_SETTING_BY_SERVICE[service])
        try:
            return int(raw) if raw else fallback
        except ValueError:
            logger.warning(f"⚠️ Invalid service id setting for {service.value}: {raw!r} - using default")
            return fallback

    @staticmethod
    async def get_group_chat_id(session: AsyncSession) -> Optional[int]:
        """Notification target for new order announcements, if any"""
        raw = await SettingsService.get(session, SettingKeys.GROUP_CHAT_ID)
        if raw:
            try:
                return int(raw)
            except ValueError:
                logger.warning(f"⚠️ Invalid group_chat_id setting: {raw!r}")
        return Config.GROUP_CHAT_ID
