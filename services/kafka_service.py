"""
Kafka Service for handling message publishing to Kafka topics.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from kafka import KafkaProducer
from kafka.errors import KafkaError
import config.settings as settings

logger = logging.getLogger(__name__)


class KafkaService:
    """Service for handling Kafka operations."""

    def __init__(self):
        """Initialize Kafka service."""
        self.bootstrap_servers = settings.KAFKA_BOOTSTRAP_SERVERS
        self.producer = None
        self._init_producer()

    def _init_producer(self) -> None:
        """Initialize Kafka producer."""
        try:
            self.producer = KafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda x: json.dumps(x).encode('utf-8'),
                key_serializer=lambda x: x.encode('utf-8') if x else None,
                acks='all',  # Wait for all replicas to acknowledge
                retries=3,
                retry_backoff_ms=1000,
                request_timeout_ms=30000
            )
            logger.info(f"Kafka producer initialized with servers: {self.bootstrap_servers}")
        except Exception as e:
            logger.error(f"Failed to initialize Kafka producer: {e}")
            self.producer = None

    def publish_email(
        self,
        template: str,
        to: str,
        subject: str,
        message_id: str,
        context: Dict[str, Any],
        reply_to: Optional[str] = None,
        from_address: Optional[str] = None
    ) -> bool:
        """
        Publish a templated email request for the mailer.

        Args:
            template: Template name known to the mailer
            to: Recipient address
            subject: Subject line
            message_id: Pre-generated RFC 5322 Message-ID the mailer must use
            context: Template variables
            reply_to: Optional Reply-To address
            from_address: Optional From address override

        Returns:
            True if published successfully, False otherwise
        """
        message = {
            'template': template,
            'to': to,
            'subject': subject,
            'message_id': message_id,
            'reply_to': reply_to,
            'from': from_address,
            'context': context,
            'timestamp': self._get_timestamp()
        }

        return self._publish_message(
            topic=settings.EMAIL_TOPIC,
            key=to,
            value=message
        )

    def publish_progress_recompute(self, application_id: int, reason: str) -> bool:
        """
        Publish a request to recompute an application's progress.

        Args:
            application_id: Application ID
            reason: What changed, for tracing

        Returns:
            True if published successfully, False otherwise
        """
        message = {
            'application_id': application_id,
            'reason': reason,
            'timestamp': self._get_timestamp()
        }

        return self._publish_message(
            topic=settings.PROGRESS_TOPIC,
            key=str(application_id),
            value=message
        )

    def _publish_message(self, topic: str, key: str, value: Dict[str, Any]) -> bool:
        """
        Publish message to Kafka topic.

        Args:
            topic: Kafka topic name
            key: Message key
            value: Message value

        Returns:
            True if published successfully, False otherwise
        """
        if not self.producer:
            logger.error("Kafka producer not initialized")
            return False

        try:
            future = self.producer.send(topic, key=key, value=value)
            # Wait for the message to be sent
            record_metadata = future.get(timeout=10)
            logger.info(
                f"Message published to {topic} - "
                f"partition: {record_metadata.partition}, "
                f"offset: {record_metadata.offset}"
            )
            return True

        except KafkaError as e:
            logger.error(f"Failed to publish message to {topic}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error publishing to {topic}: {e}")
            return False

    def _get_timestamp(self) -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(timezone.utc).isoformat()

    def close(self) -> None:
        """Close Kafka producer."""
        if self.producer:
            self.producer.close()
