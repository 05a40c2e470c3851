"""Thread-safe speaking session state."""

import threading
from enum import Enum
from typing import Optional


class BackendKind(Enum):
    """Which mechanism produces speech."""
    SYNTHESIS = "synthesis"
    EXTERNAL_PROCESS = "external_process"
    NONE = "none"


class SessionState:
    """Mutable session fields guarded by one lock.

    The speaker worker is the only writer; other threads only read
    snapshots through the properties.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._backend = BackendKind.NONE
        self._is_speaking = False
        self._current_text = ""
        self._spoken_length = 0
        self._utterance_id = 0
        self._speaking_backend: Optional[BackendKind] = None

    @property
    def backend(self) -> BackendKind:
        return self._backend

    @property
    def is_speaking(self) -> bool:
        return self._is_speaking

    @property
    def current_text(self) -> str:
        return self._current_text

    @property
    def utterance_id(self) -> int:
        """Id of the active utterance, or of the last one when idle."""
        return self._utterance_id

    @property
    def speaking_backend(self) -> Optional[BackendKind]:
        """Backend serving the active utterance, None when idle."""
        return self._speaking_backend

    def set_backend(self, backend: BackendKind):
        with self._lock:
            self._backend = backend

    def try_begin(self, text: str) -> Optional[int]:
        """Start an utterance on the current backend.

        Returns the new utterance id, or None if one is already active or no
        backend is selected.
        """
        with self._lock:
            if self._is_speaking or self._backend is BackendKind.NONE:
                return None
            self._utterance_id += 1
            self._is_speaking = True
            self._current_text = text
            self._spoken_length = 0
            self._speaking_backend = self._backend
            return self._utterance_id

    def is_current(self, utterance_id: Optional[int]) -> bool:
        """True if signals for ``utterance_id`` still apply.

        ``None`` stands for whatever utterance is active.
        """
        with self._lock:
            if not self._is_speaking:
                return False
            return utterance_id is None or utterance_id == self._utterance_id

    def advance(self, index: int) -> str:
        """Move the spoken prefix forward and return it.

        The prefix never shrinks within an utterance.
        """
        with self._lock:
            index = min(max(index, 0), len(self._current_text))
            self._spoken_length = max(self._spoken_length, index)
            return self._current_text[:self._spoken_length]

    def finish(self, utterance_id: Optional[int] = None) -> bool:
        """End the active utterance. Returns False if it already ended."""
        with self._lock:
            if not self._is_speaking:
                return False
            if utterance_id is not None and utterance_id != self._utterance_id:
                return False
            self._is_speaking = False
            self._current_text = ""
            self._spoken_length = 0
            self._speaking_backend = None
            return True
