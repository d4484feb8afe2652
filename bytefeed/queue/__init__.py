"""Processing queue with a bounded-retry edition state machine."""

from bytefeed.queue.models import BatchResult, ProcessingResult, QueueStats
from bytefeed.queue.processor import ProcessingQueue
from bytefeed.queue.state_machine import EditionStateError, EditionStateMachine


__all__ = [
    "BatchResult",
    "EditionStateError",
    "EditionStateMachine",
    "ProcessingQueue",
    "ProcessingResult",
    "QueueStats",
]
