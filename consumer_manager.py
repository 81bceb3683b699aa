"""
Worker manager running the progress consumer and the inbox poll scheduler.
"""
import logging
import threading
import signal
import sys
from typing import List
from concurrent.futures import ThreadPoolExecutor, as_completed
from injector import Injector

from config.injection import ServiceModule
from database.connection import init_database
from consumers import ProgressRecomputeConsumer, TPRPollScheduler

logger = logging.getLogger(__name__)


class ConsumerManager:
    """Manager for running the background workers."""

    def __init__(self):
        """Initialize consumer manager."""
        self.consumers = []
        self.executor = None
        self.shutdown_event = threading.Event()

        # Set up signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down consumers...")
        self.shutdown()

    def _create_consumers(self) -> List:
        """Create worker instances through the injector."""
        logger.info("Initializing services and repositories...")
        injector = Injector([ServiceModule])

        consumers = [
            injector.get(ProgressRecomputeConsumer),
            injector.get(TPRPollScheduler)
        ]

        logger.info(f"Created {len(consumers)} consumer instances")
        return consumers

    def start(self) -> None:
        """Start all workers in separate threads."""
        logger.info("Starting consumer manager...")

        try:
            self.consumers = self._create_consumers()

            self.executor = ThreadPoolExecutor(
                max_workers=len(self.consumers),
                thread_name_prefix="worker"
            )

            futures = []
            for i, consumer in enumerate(self.consumers):
                consumer_name = consumer.__class__.__name__
                logger.info(f"Starting consumer {i+1}/{len(self.consumers)}: {consumer_name}")

                future = self.executor.submit(self._run_consumer, consumer, consumer_name)
                futures.append(future)

            logger.info(f"Successfully started {len(self.consumers)} consumers")

            # Wait for consumers to complete or shutdown signal
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    logger.error(f"Consumer failed: {e}")

        except Exception as e:
            logger.error(f"Error starting consumers: {e}")
            self.shutdown()
            raise

    def _run_consumer(self, consumer, consumer_name: str) -> None:
        """Run a single worker with error handling."""
        try:
            logger.info(f"Consumer {consumer_name} started")
            consumer.process_messages()
        except Exception as e:
            logger.error(f"Consumer {consumer_name} failed: {e}")
            raise
        finally:
            logger.info(f"Consumer {consumer_name} stopped")

    def shutdown(self) -> None:
        """Stop all workers; a running inbox poll is cancelled between messages."""
        if self.shutdown_event.is_set():
            return
        logger.info("Shutting down consumer manager...")

        self.shutdown_event.set()

        for consumer in self.consumers:
            consumer.stop()

        # Signal handlers run on the main thread, which may be waiting on the pool
        if self.executor:
            logger.info("Shutting down thread pool...")
            self.executor.shutdown(wait=False)

        logger.info("Consumer manager shutdown complete")


def main():
    """Main entry point for running the workers."""
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler('workers.log')
        ]
    )

    logger.info("Starting progress consumer and inbox poll scheduler...")

    # The lease table must exist before the first scheduled poll
    init_database()

    manager = ConsumerManager()

    try:
        manager.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        sys.exit(1)
    finally:
        manager.shutdown()
        logger.info("Application stopped")


if __name__ == "__main__":
    main()
