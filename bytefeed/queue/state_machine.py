"""Edition processing state machine."""

from typing import ClassVar

import structlog

from bytefeed.config.constants import COMPONENT_QUEUE
from bytefeed.store.models import ProcessingStatus


logger = structlog.get_logger()


class EditionStateError(Exception):
    """Raised when an invalid edition state transition is attempted."""

    def __init__(self, from_state: ProcessingStatus, to_state: ProcessingStatus) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid edition state transition: {from_state.value} -> {to_state.value}"
        )


class EditionStateMachine:
    """State machine for one edition's processing lifecycle.

    State transitions:
        pending -> processing: Claimed by a batch run
        processing -> completed: Extraction succeeded
        processing -> pending: Extraction failed with attempts left, or stale recovery
        processing -> failed: Extraction failed on the last attempt
        failed -> pending: Explicit reset or requeue
        completed -> pending: Manual requeue
    """

    VALID_TRANSITIONS: ClassVar[dict[ProcessingStatus, set[ProcessingStatus]]] = {
        ProcessingStatus.PENDING: {ProcessingStatus.PROCESSING},
        ProcessingStatus.PROCESSING: {
            ProcessingStatus.COMPLETED,
            ProcessingStatus.PENDING,
            ProcessingStatus.FAILED,
        },
        ProcessingStatus.FAILED: {ProcessingStatus.PENDING},
        ProcessingStatus.COMPLETED: {ProcessingStatus.PENDING},
    }

    def __init__(
        self,
        edition_id: str,
        state: ProcessingStatus = ProcessingStatus.PENDING,
    ) -> None:
        """Initialize the state machine.

        Args:
            edition_id: Edition identifier for logging.
            state: Current persisted state.
        """
        self._edition_id = edition_id
        self._state = state
        self._log = logger.bind(component=COMPONENT_QUEUE, edition_id=edition_id)

    @property
    def state(self) -> ProcessingStatus:
        """Get the current state."""
        return self._state

    @property
    def edition_id(self) -> str:
        """Get the edition ID."""
        return self._edition_id

    def can_transition(self, to_state: ProcessingStatus) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: ProcessingStatus) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            EditionStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.value,
                to_state=to_state.value,
            )
            raise EditionStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug(
            "edition_state_transition",
            from_state=old_state.value,
            to_state=to_state.value,
        )

    def is_terminal(self) -> bool:
        """Check if the edition needs no further automatic processing."""
        return self._state in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)
