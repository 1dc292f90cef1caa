"""Explicit deadline / cancellation signal passed into every store call."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from tokenauth.services._shared.errors import DeadlineExceeded


@dataclass(slots=True)
class Deadline:
    """
    Absolute point in (monotonic) time after which a blocking call must give up.

    A deadline can also be cancelled by another thread, e.g. when the caller's
    request is aborted. Instances are shared by reference; never ambient.

    :ivar expires_at: ``time.monotonic()`` value of the deadline, or ``None``
        for an unbounded deadline that only reacts to :meth:`cancel`.
    """

    expires_at: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        """Build a deadline ``seconds`` from now."""
        if seconds < 0:
            raise ValueError("seconds must not be negative")
        return cls(expires_at=time.monotonic() + seconds)

    @classmethod
    def never(cls) -> Deadline:
        """Build a deadline that never expires on its own."""
        return cls(expires_at=None)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left (never negative), or ``None`` when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, operation: str) -> None:
        """
        Raise :class:`DeadlineExceeded` if the caller no longer wants ``operation``.

        :param operation: Label used in the raised error.
        :raises DeadlineExceeded: When cancelled or past the deadline.
        """
        if self.cancelled:
            raise DeadlineExceeded(operation=operation, cancelled=True)
        if self.expired:
            raise DeadlineExceeded(operation=operation)


def check_deadline(deadline: Deadline | None, operation: str) -> None:
    """Convenience wrapper accepting an optional deadline."""
    if deadline is not None:
        deadline.check(operation)


__all__ = ["Deadline", "check_deadline"]
