"""State machine for a single page fetch."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class PageState(str, Enum):
    """State of one page fetch.

    - IDLE: Not yet started
    - SENDING: An attempt is in flight through the transport
    - RETRY_WAIT: Waiting the ordinary retry delay
    - FORBIDDEN_RETRY_WAIT: Waiting the longer delay after a 403
    - SUCCESS: 2xx response delivered
    - SETTLED: Non-retryable response delivered as a result
    - FAILED: Terminal failure (transport error or retries exhausted)
    """

    IDLE = "IDLE"
    SENDING = "SENDING"
    RETRY_WAIT = "RETRY_WAIT"
    FORBIDDEN_RETRY_WAIT = "FORBIDDEN_RETRY_WAIT"
    SUCCESS = "SUCCESS"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


_TERMINAL_STATES = frozenset({PageState.SUCCESS, PageState.SETTLED, PageState.FAILED})

# Valid state transitions
_VALID_TRANSITIONS: dict[PageState, set[PageState]] = {
    PageState.IDLE: {PageState.SENDING},
    PageState.SENDING: {
        PageState.RETRY_WAIT,
        PageState.FORBIDDEN_RETRY_WAIT,
        PageState.SUCCESS,
        PageState.SETTLED,
        PageState.FAILED,
    },
    PageState.RETRY_WAIT: {PageState.SENDING},
    PageState.FORBIDDEN_RETRY_WAIT: {PageState.SENDING},
    PageState.SUCCESS: set(),  # Terminal state
    PageState.SETTLED: set(),  # Terminal state
    PageState.FAILED: set(),  # Terminal state
}


class PageStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(self, url: str, from_state: PageState, to_state: PageState) -> None:
        """Initialize the transition error.

        Args:
            url: URL of the page being fetched.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.url = url
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for page '{url}': "
            f"{from_state.value} -> {to_state.value}"
        )


class PageStateMachine:
    """Tracks the lifecycle of one page fetch and logs every change."""

    def __init__(
        self,
        url: str,
        page_index: int = 0,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the state machine in IDLE.

        Args:
            url: URL of the page.
            page_index: Zero-based page number in the pagination run.
            log: Logger to report transitions on.
        """
        self._url = url
        self._state = PageState.IDLE
        self._attempt = 0
        self._log = (log or logger).bind(component="page_state", page=page_index)

    @property
    def state(self) -> PageState:
        """Get the current state."""
        return self._state

    @property
    def attempt(self) -> int:
        """Number of attempts sent so far."""
        return self._attempt

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in _TERMINAL_STATES

    def can_transition_to(self, target: PageState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: PageState) -> None:
        """Transition to a new state.

        Entering SENDING counts a new attempt.

        Args:
            target: The target state.

        Raises:
            PageStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise PageStateTransitionError(self._url, self._state, target)

        old_state = self._state
        self._state = target
        if target == PageState.SENDING:
            self._attempt += 1

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
            attempt=self._attempt,
        )

    def to_sending(self) -> None:
        """Transition to SENDING, starting a new attempt."""
        self.transition_to(PageState.SENDING)

    def to_retry_wait(self, *, forbidden: bool = False) -> None:
        """Transition to the wait state matching the delay kind."""
        self.transition_to(
            PageState.FORBIDDEN_RETRY_WAIT if forbidden else PageState.RETRY_WAIT
        )

    def to_success(self) -> None:
        """Transition to SUCCESS."""
        self.transition_to(PageState.SUCCESS)

    def to_settled(self) -> None:
        """Transition to SETTLED."""
        self.transition_to(PageState.SETTLED)

    def to_failed(self) -> None:
        """Transition to FAILED."""
        self.transition_to(PageState.FAILED)
