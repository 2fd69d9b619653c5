"""State of the "may I remember this person?" dialog."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsentSnapshot:
    open: bool
    denied_this_streak: bool
    has_pending_image: bool
    serial: int


class ConsentFlow:
    """Tracks the pending enrollment prompt.

    ``serial`` changes every time the dialog opens, closes or resets, so an
    answer (or an enrollment) that finishes after the dialog moved on can be
    recognised as stale and dropped.
    """

    def __init__(self) -> None:
        self.pending_image: Optional[bytes] = None
        self.open = False
        self.denied_this_streak = False
        self.serial = 0

    @property
    def eligible(self) -> bool:
        """Whether an unknown face may open the dialog."""
        return not self.open and not self.denied_this_streak

    def open_for(self, image: bytes) -> int:
        self.serial += 1
        self.pending_image = image
        self.open = True
        logger.info("[consent] asking to remember a new face")
        return self.serial

    def deny(self) -> None:
        if not self.open:
            return
        self.serial += 1
        self.pending_image = None
        self.open = False
        self.denied_this_streak = True
        logger.info("[consent] declined; not asking again until the face leaves")

    def close(self) -> None:
        if self.open:
            self.serial += 1
        self.pending_image = None
        self.open = False

    def reset(self) -> None:
        """Close the dialog and forget any denial."""
        if self.open or self.denied_this_streak or self.pending_image is not None:
            self.serial += 1
        self.pending_image = None
        self.open = False
        self.denied_this_streak = False

    def is_current(self, serial: int) -> bool:
        return self.open and serial == self.serial

    def snapshot(self) -> ConsentSnapshot:
        return ConsentSnapshot(
            open=self.open,
            denied_this_streak=self.denied_this_streak,
            has_pending_image=self.pending_image is not None,
            serial=self.serial,
        )


__all__ = ["ConsentFlow", "ConsentSnapshot"]
