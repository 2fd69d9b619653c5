from __future__ import annotations

import threading
from typing import Dict, List


class TranscriptBuffer:
    """Committed speech kept apart from provisional (interim) results.

    Streaming providers revise an utterance several times before finalising
    it. Interim text lives in a dict keyed by the provider's result id and is
    replaced on every revision, so it is never counted twice. A final result
    removes its interim entry and is appended to the committed text.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._committed: List[str] = []
        self._interim: Dict[str, str] = {}

    def add_interim(self, result_id: str, text: str) -> None:
        with self._lock:
            if text.strip():
                self._interim[result_id] = text.strip()
            else:
                self._interim.pop(result_id, None)

    def add_final(self, result_id: str, text: str) -> None:
        with self._lock:
            self._interim.pop(result_id, None)
            if text.strip():
                self._committed.append(text.strip())

    def promote_interim(self) -> None:
        """Treat whatever is still provisional as final (used when a stream ends early)."""
        with self._lock:
            for text in self._interim.values():
                self._committed.append(text)
            self._interim.clear()

    @property
    def committed(self) -> str:
        with self._lock:
            return " ".join(self._committed)

    @property
    def interim(self) -> str:
        with self._lock:
            return " ".join(self._interim.values())

    @property
    def live(self) -> str:
        with self._lock:
            return " ".join(self._committed + list(self._interim.values()))

    def snapshot(self) -> str:
        """Committed text, or the live text when nothing has been committed yet."""
        committed = self.committed
        return committed if committed else self.live

    def clear(self) -> None:
        with self._lock:
            self._committed.clear()
            self._interim.clear()


__all__ = ["TranscriptBuffer"]
