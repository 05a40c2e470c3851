"""Abstract base class for speech backends."""

from abc import ABC, abstractmethod
from typing import Callable, Optional

# on_progress(position, count, utterance_id=...)
ProgressCallback = Callable[..., None]
# on_completion(canceled, utterance_id=...)
CompletionCallback = Callable[..., None]


class SpeechBackend(ABC):
    """A mechanism that speaks one utterance at a time.

    Signals are delivered on the backend's own thread and always carry the
    utterance id passed to ``speak`` so stale ones can be told apart.
    """

    def __init__(self):
        self._on_progress: Optional[ProgressCallback] = None
        self._on_completion: Optional[CompletionCallback] = None

    def connect(
        self,
        on_progress: Optional[ProgressCallback],
        on_completion: Optional[CompletionCallback],
    ) -> None:
        """Attach the receivers of progress and completion signals."""
        self._on_progress = on_progress
        self._on_completion = on_completion

    def _signal_progress(self, utterance_id: int, position: int, count: int) -> None:
        if self._on_progress is not None:
            self._on_progress(position, count, utterance_id=utterance_id)

    def _signal_completion(self, utterance_id: int, canceled: bool) -> None:
        if self._on_completion is not None:
            self._on_completion(canceled, utterance_id=utterance_id)

    @abstractmethod
    def speak(self, text: str, utterance_id: int) -> None:
        """Start speaking ``text`` and return without waiting.

        Raises SpeechBackendError if the utterance cannot be started.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Abort the utterance in progress, if any."""
        ...

    def cleanup(self) -> None:
        """Release backend resources."""
        pass
