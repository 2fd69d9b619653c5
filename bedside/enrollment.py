from __future__ import annotations

import logging
from typing import Optional

from reminisce.schema import Identity, initial_history

logger = logging.getLogger(__name__)


class FaceEnroller:
    """Create a new identity from a captured image.

    Blocking: computes a face encoding and writes to the store. Returns None
    when the image holds no usable face; store errors (for example a name
    that is already taken) propagate to the caller.
    """

    def __init__(self, recognizer, store) -> None:
        self._recognizer = recognizer
        self._store = store

    def enroll(self, name: str, image: bytes, bio: str = "New Person", contact: str = "") -> Optional[Identity]:
        embedding = self._recognizer.embed_image(image)
        if embedding is None:
            logger.info("[enroll] no face found for %s", name)
            return None
        identity = Identity(
            name=name.strip(),
            embedding=embedding,
            bio=bio,
            contact=contact,
            history=initial_history(bio),
        )
        self._store.create(identity)
        self._recognizer.remember(identity)
        logger.info("[enroll] enrolled face as %s", identity.name)
        return identity


__all__ = ["FaceEnroller"]
