"""
Progress Recompute Consumer for application.progress events.
"""
import json
import logging
import threading
from typing import Dict, Any
from kafka import KafkaConsumer
from injector import inject

from database.connection import get_db_session
from services.exceptions import NotFoundError
from services.progress_service import ProgressService
import config.settings as settings

logger = logging.getLogger(__name__)

POLL_TIMEOUT_MS = 1000


class ProgressRecomputeConsumer:
    """Consumer for the application.progress topic - recomputes application progress."""

    @inject
    def __init__(self, progress_service: ProgressService):
        """Initialize progress recompute consumer."""
        self.progress_service = progress_service
        self.consumer = None
        self.shutdown_event = threading.Event()

        self._init_consumer()

    def _init_consumer(self) -> None:
        """Initialize Kafka consumer."""
        try:
            self.consumer = KafkaConsumer(
                settings.PROGRESS_TOPIC,
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_deserializer=lambda m: json.loads(m.decode('utf-8')),
                key_deserializer=lambda m: m.decode('utf-8') if m else None,
                group_id='application-progress-group',
                auto_offset_reset='earliest',
                enable_auto_commit=True
            )
            logger.info("Progress recompute consumer initialized")
        except Exception as e:
            logger.error(f"Failed to initialize progress recompute consumer: {e}")
            self.consumer = None

    def process_messages(self) -> None:
        """Process messages from the progress topic until stopped."""
        if not self.consumer:
            logger.error("Consumer not initialized")
            return

        logger.info("Starting progress recompute message processing...")

        try:
            while not self.shutdown_event.is_set():
                batches = self.consumer.poll(timeout_ms=POLL_TIMEOUT_MS)
                for records in batches.values():
                    for record in records:
                        try:
                            self._process_progress_message(record.value)
                        except Exception as e:
                            logger.error(f"Error processing progress message: {e}")
        except Exception as e:
            logger.error(f"Error in progress recompute consumer: {e}")
        finally:
            if self.consumer:
                self.consumer.close()

    def _process_progress_message(self, message: Dict[str, Any]) -> None:
        """Recompute one application's progress."""
        application_id = message['application_id']
        logger.info(f"Recomputing progress for application {application_id} ({message.get('reason', 'unspecified')})")

        try:
            with get_db_session() as session:
                progress = self.progress_service.update_application_progress(session, application_id)
        except NotFoundError:
            logger.warning(f"Application {application_id} not found, skipping progress event")
            return

        logger.info(
            f"Application {application_id} at step {progress['current_step']}/{progress['total_steps']} "
            f"({progress['overall_status']})"
        )

    def stop(self) -> None:
        self.shutdown_event.set()
