"""
Background workers: Kafka consumers and scheduled tasks.
"""

from .progress_recompute_consumer import ProgressRecomputeConsumer
from .tpr_poll_scheduler import TPRPollScheduler

__all__ = [
    'ProgressRecomputeConsumer',
    'TPRPollScheduler'
]
