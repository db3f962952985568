"""
Background Job Scheduler

Two jobs:
1. Order status reconciliation - every STATUS_CHECK_INTERVAL_MIN minutes
2. JSON backup of users and orders - every BACKUP_INTERVAL_HOURS hours
"""

import logging
from datetime import datetime, timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore

from config import Config
from jobs.order_status_monitor import check_order_statuses, order_status_monitor
from services.backup_service import run_backup

logger = logging.getLogger(__name__)


class StorefrontScheduler:
    """APScheduler wrapper owning the storefront's periodic jobs"""

    def __init__(self, application=None):
        self.application = application

        jobstores = {
            'default': MemoryJobStore()
        }
        executors = {
            'default': AsyncIOExecutor()
        }
        job_defaults = {
            'coalesce': True,  # Prevent job pileup
            'max_instances': 1,  # Single instance enforcement
            'misfire_grace_time': 120
        }

        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone='UTC'
        )

    def setup_jobs(self):
        if self.application is not None:
            order_status_monitor.bot = self.application.bot

        # ===== ORDER STATUS RECONCILIATION =====
        interval = Config.STATUS_CHECK_INTERVAL_MIN
        self.scheduler.add_job(
            check_order_statuses,
            trigger=IntervalTrigger(minutes=interval, start_date=datetime.now() + timedelta(seconds=30)),
            id="order_status_reconciliation",
            name="🔄 Order Status Reconciliation",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
            replace_existing=True
        )
        logger.info(f"✅ Order status reconciliation scheduled every {interval} minutes")

        # ===== BACKUP =====
        if Config.BACKUP_INTERVAL_HOURS > 0:
            self.scheduler.add_job(
                run_backup,
                trigger=IntervalTrigger(hours=Config.BACKUP_INTERVAL_HOURS),
                id="json_backup",
                name="💾 JSON Backup - Users & Orders",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=3600,
                replace_existing=True
            )
            logger.info(f"✅ Backup scheduled every {Config.BACKUP_INTERVAL_HOURS} hours")
        else:
            logger.info("⏭️ Backups disabled (BACKUP_INTERVAL_HOURS=0)")

    def start(self):
        self.setup_jobs()
        self.scheduler.start()
        job_names = [f"{job.name} ({job.id})" for job in self.scheduler.get_jobs()]
        logger.info(f"📋 Active jobs: {job_names}")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("📴 Job scheduler stopped")
