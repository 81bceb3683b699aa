"""
Scheduled inbox reconciliation for third-party verifications.
"""
import logging
import threading
from injector import inject

from services.tpr_reconciler import TPRReconciler
import config.settings as settings

logger = logging.getLogger(__name__)


class TPRPollScheduler:
    """Runs the inbox reconciler every TPR_POLL_INTERVAL_SECONDS until stopped."""

    @inject
    def __init__(self, reconciler: TPRReconciler):
        """Initialize poll scheduler."""
        self.reconciler = reconciler
        self.shutdown_event = threading.Event()

    def run_once(self) -> dict:
        """Run one reconciliation pass, cancelled if the scheduler stops mid-run."""
        return self.reconciler.poll_inbox(cancel_event=self.shutdown_event)

    def process_messages(self) -> None:
        """Poll the inbox on a fixed interval until stopped."""
        interval = settings.TPR_POLL_INTERVAL_SECONDS
        logger.info(f"Starting inbox poll scheduler (every {interval}s)...")

        while not self.shutdown_event.is_set():
            try:
                summary = self.run_once()
                logger.info(
                    f"Scheduled inbox poll: scanned={summary['scanned']} matched={summary['matched']}"
                )
            except Exception as e:
                logger.error(f"Scheduled inbox poll failed: {e}")

            self.shutdown_event.wait(interval)

        logger.info("Inbox poll scheduler stopped")

    def stop(self) -> None:
        self.shutdown_event.set()
