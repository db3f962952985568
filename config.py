"""Configuration management for the SMM Storefront Bot"""

import os
import logging
from decimal import Decimal
from typing import Set

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _parse_id_list(raw: str) -> Set[int]:
    """Parse a comma separated list of Telegram ids, skipping junk entries"""
    ids = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            logger.warning(f"⚠️ Ignoring invalid admin id in ADMIN_IDS: {part!r}")
    return ids


class Config:
    """Application configuration"""

    # Environment detection
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower().strip()
    IS_PRODUCTION = ENVIRONMENT == "production"

    # Bot configuration
    BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN")
    BOT_USERNAME = os.getenv("BOT_USERNAME", "@YourBotUsername")
    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "@AdminUsername")

    # Database configuration
    DATABASE_URL = os.getenv("DATABASE_URL")
    DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Admin allow-list
    ADMIN_IDS = _parse_id_list(os.getenv("ADMIN_IDS", ""))

    # Optional Telegram group that receives new order announcements
    GROUP_CHAT_ID = int(os.getenv("GROUP_CHAT_ID")) if os.getenv("GROUP_CHAT_ID") else None

    # SMM provider API
    SMM_API_URL = os.getenv("SMM_API_URL", os.getenv("VIRALSMM_API_URL", "https://viralsmm.in/api/v2"))
    SMM_API_KEY = os.getenv("SMM_API_KEY", os.getenv("VIRALSMM_API_KEY", ""))
    SMM_API_TIMEOUT = int(os.getenv("SMM_API_TIMEOUT", "30"))  # seconds

    # Default settings seeded into the settings table when missing
    DEFAULT_PRICE_LIKES_PER_1K = Decimal(os.getenv("DEFAULT_PRICE_LIKES_PER_1K", "1.2"))
    DEFAULT_PRICE_VIEWS_PER_1K = Decimal(os.getenv("DEFAULT_PRICE_VIEWS_PER_1K", "0.9"))
    DEFAULT_SERVICE_ID_LIKES = int(os.getenv("DEFAULT_SERVICE_ID_LIKES", "11505"))
    DEFAULT_SERVICE_ID_VIEWS = int(os.getenv("DEFAULT_SERVICE_ID_VIEWS", "10695"))

    # Funding
    MIN_FUNDING_AMOUNT = Decimal(os.getenv("MIN_FUNDING_AMOUNT", "10"))
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")
    QR_IMAGE_PATH = os.getenv("QR_IMAGE_PATH", "./qr.png")

    # Reconciliation loop
    STATUS_CHECK_INTERVAL_MIN = max(1, int(os.getenv("STATUS_CHECK_INTERVAL_MIN", "5")))
    STATUS_CHECK_BATCH_SIZE = int(os.getenv("STATUS_CHECK_BATCH_SIZE", "200"))

    # Backups
    BACKUP_PATH = os.getenv("BACKUP_PATH", "./backups")
    BACKUP_INTERVAL_HOURS = int(os.getenv("BACKUP_INTERVAL_HOURS", "24"))
    BACKUP_RETENTION_DAYS = int(os.getenv("BACKUP_RETENTION_DAYS", "7"))  # 0 keeps everything

    # Broadcast pacing between sends (seconds)
    BROADCAST_DELAY_SECONDS = float(os.getenv("BROADCAST_DELAY_SECONDS", "0.1"))

    # Health server
    PORT = int(os.getenv("PORT", "3000"))

    @staticmethod
    def log_environment_config():
        """Log current environment configuration for debugging"""
        logger.info("🔧 Bot Environment Configuration:")
        logger.info(f"   Environment: {Config.ENVIRONMENT.upper()}")
        logger.info(f"   Bot Username: {Config.BOT_USERNAME}")
        logger.info(f"   Database: {'✅ Set' if Config.DATABASE_URL else '❌ Not set'}")
        logger.info(f"   Admins configured: {len(Config.ADMIN_IDS)}")
        logger.info(f"   Provider API: {Config.SMM_API_URL} (key {'✅ Set' if Config.SMM_API_KEY else '❌ Not set'})")
        logger.info(f"   Status check every {Config.STATUS_CHECK_INTERVAL_MIN} min, batch {Config.STATUS_CHECK_BATCH_SIZE}")
        if Config.GROUP_CHAT_ID:
            logger.info(f"   Order announcements group: {Config.GROUP_CHAT_ID}")

    @staticmethod
    def validate():
        """Validate required startup configuration - missing values are fatal"""
        missing = []
        if not Config.BOT_TOKEN:
            missing.append("BOT_TOKEN")
        if not Config.DATABASE_URL:
            missing.append("DATABASE_URL")

        if missing:
            logger.critical(f"❌ Missing required configuration: {', '.join(missing)}")
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        if not Config.ADMIN_IDS:
            logger.warning("⚠️ ADMIN_IDS not configured - admin commands will reject everyone")
        if not Config.SMM_API_KEY:
            logger.warning("⚠️ SMM_API_KEY not configured - provider orders will fail")

        return True
