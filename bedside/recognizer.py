#!/usr/bin/env python3
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import face_recognition
import numpy as np

from reminisce.config import ConfigHolder
from reminisce.schema import Identity

from .presence import Match, NoFace, Unmatched, Verdict

logger = logging.getLogger(__name__)

JPEG_QUALITY = 85

# face_recognition boxes are (top, right, bottom, left)
Box = Tuple[int, int, int, int]


def encode_jpeg(frame: np.ndarray, quality: int = JPEG_QUALITY) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buf.tobytes()


def decode_jpeg(data: bytes) -> Optional[np.ndarray]:
    if not data:
        return None
    arr = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _width(box: Box) -> int:
    return box[1] - box[3]


def _largest(boxes: Iterable[Box]) -> Box:
    return max(boxes, key=lambda b: _width(b) * (b[2] - b[0]))


class FaceRecognizer:
    """Classify the most prominent face in a frame against enrolled identities.

    ``detect`` is blocking (HOG detection plus a 128-d encoding) and is run
    off the event loop by the monitor. The known-identity table can be
    updated from the loop while a detection is in flight.
    """

    def __init__(self, settings: ConfigHolder, identities: Iterable[Identity] = ()) -> None:
        self._settings = settings
        self._lock = threading.Lock()
        self._identities: Dict[str, Identity] = {}
        self._names: List[str] = []
        self._known = np.empty((0, 128), dtype=np.float64)
        self.load(identities)

    # ---- Known identities ----
    def load(self, identities: Iterable[Identity]) -> None:
        with self._lock:
            self._identities = {i.name: i for i in identities if i.embedding}
            self._rebuild()
        logger.info("Loaded %d face profiles", len(self._identities))

    def remember(self, identity: Identity) -> None:
        with self._lock:
            self._identities[identity.name] = identity
            self._rebuild()

    def _rebuild(self) -> None:
        self._names = list(self._identities)
        if self._names:
            self._known = np.asarray(
                [self._identities[n].embedding for n in self._names], dtype=np.float64
            )
        else:
            self._known = np.empty((0, 128), dtype=np.float64)

    # ---- Detection ----
    def _primary_face(self, rgb: np.ndarray) -> Optional[Box]:
        boxes = face_recognition.face_locations(rgb, model="hog")
        if not boxes:
            return None
        return _largest(boxes)

    def detect(self, frame: Optional[np.ndarray]) -> Verdict:
        if frame is None:
            return NoFace()
        cfg = self._settings.current
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        box = self._primary_face(rgb)
        if box is None:
            return NoFace()
        if _width(box) < cfg.min_face_width_px:
            # Too small to classify reliably; treat as nobody there.
            return NoFace()
        encodings = face_recognition.face_encodings(rgb, [box], num_jitters=1)
        if not encodings:
            return NoFace()
        image = encode_jpeg(frame)

        with self._lock:
            names, known = self._names, self._known
            identities = self._identities
        if not names:
            return Unmatched(image)

        distances = face_recognition.face_distance(known, encodings[0])
        best = int(np.argmin(distances))
        distance = float(distances[best])
        if distance <= cfg.match_tolerance:
            logger.debug("matched %s (distance=%.3f)", names[best], distance)
            return Match(identities[names[best]], distance, image)
        logger.debug("unmatched face (closest %s at %.3f)", names[best], distance)
        return Unmatched(image)

    def embed_image(self, image: bytes) -> Optional[List[float]]:
        """Encoding of the most prominent face in a JPEG/PNG, or None."""
        bgr = decode_jpeg(image)
        if bgr is None:
            return None
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        box = self._primary_face(rgb)
        if box is None:
            return None
        encodings = face_recognition.face_encodings(rgb, [box], num_jitters=1)
        if not encodings:
            return None
        return [float(v) for v in encodings[0]]


__all__ = ["FaceRecognizer", "decode_jpeg", "encode_jpeg"]
