# chemconv/pipeline.py
"""Owning handles for objects routed through a conversion session."""

from __future__ import annotations

import enum
from typing import Any, Optional

from .errors import HandleStateError


class HandleState(enum.Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    DISCARDED = "discarded"


class ObjectHandle:
    """Single-owner wrapper around one domain object.

    Every handle ends in exactly one terminal state: ``consume()`` hands the
    object to a writer, ``discard()`` drops it on purpose. Any further use of
    a terminal handle raises :class:`HandleStateError`.

    Attributes:
        ordinal: 1-based number of the object within its input stream.
        start: Input position at which the object's source text began, or
            ``None`` when the stream cannot report positions.
        end: Input position just after the object's source text.
    """

    __slots__ = ("_obj", "_state", "ordinal", "start", "end")

    def __init__(
        self,
        obj: Any,
        ordinal: int = 0,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ):
        if obj is None:
            raise ValueError("Cannot wrap None in an ObjectHandle.")
        self._obj = obj
        self._state = HandleState.PENDING
        self.ordinal = ordinal
        self.start = start
        self.end = end

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def live(self) -> bool:
        return self._state is HandleState.PENDING

    def _check_live(self, action: str) -> None:
        if self._state is not HandleState.PENDING:
            raise HandleStateError(
                f"Cannot {action} object #{self.ordinal}: handle already "
                f"{self._state.value}"
            )

    def peek(self) -> Any:
        """Return the object without giving up ownership."""
        self._check_live("inspect")
        return self._obj

    def replace(self, obj: Any) -> None:
        """Swap in a transformed object, keeping positions and ordinal."""
        self._check_live("replace")
        if obj is None:
            raise ValueError("Use discard() to drop an object, not replace(None).")
        self._obj = obj

    def consume(self) -> Any:
        """Transfer the object to the caller; the handle becomes terminal."""
        self._check_live("consume")
        obj, self._obj = self._obj, None
        self._state = HandleState.CONSUMED
        return obj

    def discard(self) -> None:
        """Drop the object explicitly."""
        self._check_live("discard")
        self._obj = None
        self._state = HandleState.DISCARDED

    def __repr__(self) -> str:
        return f"<ObjectHandle #{self.ordinal} {self._state.value}>"
