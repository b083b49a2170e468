"""Per-page activity recording for fetch sessions."""

from dataclasses import dataclass, field

from ghrequestor.fetch.models import Activity, DelayEntry


@dataclass
class PageActivity:
    """Mutable record for the page fetch currently in progress.

    Appended to across retries, never replaced.
    """

    attempts: int | None = None
    delays: list[DelayEntry] = field(default_factory=list)
    rate_limit_delay: int | None = None

    def add_delay(self, entry: DelayEntry) -> None:
        """Record a wait taken before the next attempt."""
        self.delays.append(entry)

    def freeze(self) -> Activity:
        """Return an immutable snapshot of this record."""
        return Activity(
            attempts=self.attempts,
            delays=tuple(self.delays),
            rate_limit_delay=self.rate_limit_delay,
        )


class ActivityRecorder:
    """Accumulates one activity record per logical page fetch.

    Owned by a single session; records are kept in fetch order.
    """

    def __init__(self) -> None:
        self._pages: list[PageActivity] = []

    def begin_page(self) -> PageActivity:
        """Start the record for a new page fetch.

        Returns:
            The new record, also appended to the sequence.
        """
        record = PageActivity()
        self._pages.append(record)
        return record

    @property
    def current(self) -> PageActivity | None:
        """Record of the most recent page fetch."""
        return self._pages[-1] if self._pages else None

    def snapshot(self) -> tuple[Activity, ...]:
        """Get immutable copies of all records so far."""
        return tuple(record.freeze() for record in self._pages)

    def __len__(self) -> int:
        return len(self._pages)
