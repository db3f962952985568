#!/usr/bin/env python3
"""
Clean Deterministic Startup - SMM Storefront Bot

Sequence: config -> database -> default settings -> Telegram application ->
handlers -> polling -> scheduler, then the health server keeps the process
alive until it receives a shutdown signal.
"""

import logging
import asyncio
import sys
from typing import Optional
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application

from config import Config

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class CleanStartupManager:
    """Startup manager with a deterministic sequence"""

    def __init__(self):
        self.application: Optional[Application] = None
        self.scheduler = None
        self.startup_complete = False
        self.startup_errors = []

    async def initialize_database(self) -> bool:
        """Create tables and seed default settings"""
        from database import create_tables, get_async_session, test_connection
        from services.settings_service import SettingsService

        logger.info("🗄️ Initializing database...")
        if not await test_connection():
            self.startup_errors.append("Database: connection test failed")
            return False
        if not await create_tables():
            self.startup_errors.append("Database: table creation failed")
            return False

        async with get_async_session() as session:
            await SettingsService.seed_defaults(session)

        logger.info("✅ Database initialization complete")
        return True

    async def create_application(self) -> bool:
        logger.info("🤖 Creating Telegram application...")
        self.application = (
            Application.builder()
            .token(Config.BOT_TOKEN)
            .build()
        )
        logger.info("✅ Telegram application created")
        return True

    async def register_handlers(self) -> bool:
        """Register handler groups; the text router goes last so commands win"""
        from handlers.start import register_start_handlers
        from handlers.funding import register_funding_handlers
        from handlers.orders import register_order_handlers
        from handlers.profile import register_profile_handlers
        from handlers.admin import register_admin_handlers
        from handlers.text_router import register_text_router

        handler_groups = [
            ("Start", register_start_handlers),
            ("Funding", register_funding_handlers),
            ("Orders", register_order_handlers),
            ("Profile", register_profile_handlers),
            ("Admin", register_admin_handlers),
            ("Text router", register_text_router),
        ]
        for group_name, register_func in handler_groups:
            register_func(self.application)
            logger.info(f"✅ {group_name} handlers registered")

        self.application.add_error_handler(self._on_handler_error)
        return True

    @staticmethod
    async def _on_handler_error(update: object, context) -> None:
        logger.error(f"❌ Unhandled error while processing update: {context.error}", exc_info=context.error)
        if isinstance(update, Update) and update.effective_message:
            try:
                await update.effective_message.reply_text("⚠️ Something went wrong. Please try again.")
            except TelegramError as reply_error:
                logger.debug(f"Could not send error reply: {reply_error}")

    async def start_application(self) -> bool:
        logger.info("📡 Starting in polling mode...")
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("✅ Application started in polling mode")
        return True

    async def start_scheduler(self) -> bool:
        from jobs.scheduler import StorefrontScheduler

        self.scheduler = StorefrontScheduler(self.application)
        self.scheduler.start()
        return True

    async def startup_sequence(self) -> bool:
        """Execute the startup steps, stopping at the first failure"""
        logger.info("🚀 Starting SMM storefront bot...")
        Config.log_environment_config()

        startup_steps = [
            ("Database", self.initialize_database),
            ("Application", self.create_application),
            ("Handlers", self.register_handlers),
            ("Start", self.start_application),
            ("Scheduler", self.start_scheduler),
        ]

        for step_name, step_func in startup_steps:
            logger.info(f"▶️ Executing step: {step_name}")
            if not await step_func():
                logger.error(f"❌ Step '{step_name}' failed")
                for error in self.startup_errors:
                    logger.error(f"  - {error}")
                return False

        self.startup_complete = True
        logger.info("✅ Startup sequence completed successfully")
        return True

    async def shutdown(self):
        logger.info("🔄 Shutting down...")
        if self.scheduler:
            self.scheduler.stop()
        if self.application:
            if self.application.updater and self.application.updater.running:
                await self.application.updater.stop()
            if self.application.running:
                await self.application.stop()
            await self.application.shutdown()

        from database import dispose_engine
        await dispose_engine()
        logger.info("👋 Shutdown complete")


async def main():
    try:
        Config.validate()
    except ValueError as e:
        logger.critical(f"❌ Fatal configuration error: {e}")
        sys.exit(1)

    from health_server import create_health_server

    startup_manager = CleanStartupManager()
    try:
        if not await startup_manager.startup_sequence():
            logger.error("❌ Startup failed - exiting")
            sys.exit(1)

        logger.info(f"🏥 Health server listening on port {Config.PORT}")
        # Runs until SIGINT/SIGTERM
        await create_health_server().serve()
    finally:
        await startup_manager.shutdown()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 Bot stopped by user")


if __name__ == "__main__":
    run()
