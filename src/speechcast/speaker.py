"""Session controller: one utterance at a time over a pluggable speech backend.

Flow: select a backend -> speak_sentence(text) -> backend signals progress and
completion on its own thread -> the speaker turns them into SpokenSentence /
SpeakingEnd events.

Every state change and every event emission happens on the speaker's own
worker thread. Public methods hand their work to it and wait for the result;
backend signals are posted to it without waiting.
"""

import logging
import queue
import threading
from enum import Enum
from typing import Callable, Optional, Union

from speechcast.backends.process import ProcessAdapter
from speechcast.backends.synthesis import SynthesisAdapter
from speechcast.core.constants import CALL_TIMEOUT
from speechcast.core.events import EventBus, SpeakingEnd, SpokenSentence
from speechcast.core.exceptions import (
    ProgramUnavailable,
    SessionBusy,
    SpeechBackendError,
    SpeechcastError,
    VoiceSelectionFailed,
)
from speechcast.core.state import BackendKind, SessionState
from speechcast.voices.catalog import VoiceCatalog, VoiceDescriptor

logger = logging.getLogger(__name__)


class SelectResult(Enum):
    """Outcome of a successful backend selection."""
    SELECTED = "selected"
    CLEARED = "cleared"


class _Ticket:
    """Whether a queued call was started by the worker or given up by its caller."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state = "pending"

    def claim(self) -> bool:
        with self._lock:
            if self._state == "abandoned":
                return False
            self._state = "running"
            return True

    def abandon(self) -> bool:
        with self._lock:
            if self._state == "running":
                return False
            self._state = "abandoned"
            return True


class Speaker:
    """Routes utterances to the selected backend and reports their progress.

    Features:
    - At most one active utterance; overlapping calls raise SessionBusy
    - Cumulative, never-shrinking SpokenSentence progress
    - Exactly one SpeakingEnd per utterance, duplicate backend signals ignored
    - cancel() for both backends
    """

    def __init__(
        self,
        synthesis: Optional[SynthesisAdapter] = None,
        process: Optional[ProcessAdapter] = None,
        normalizer: Optional[Callable[[str], str]] = None,
        events: Optional[EventBus] = None,
        voices: Optional[VoiceCatalog] = None,
        call_timeout: float = CALL_TIMEOUT,
    ):
        self._synthesis = synthesis
        self._process = process if process is not None else ProcessAdapter()
        self._normalizer = normalizer or (lambda text: text)
        self.events = events or EventBus()
        self._state = SessionState()
        self._spoken_sentence = ""
        self._call_timeout = call_timeout

        if voices is None:
            voices = self._enumerate_voices()
        self.voices = voices

        for backend in self._backends():
            backend.connect(self.on_adapter_progress, self.on_adapter_done)

        self._tasks = queue.Queue()
        self._running = True
        self._thread = threading.Thread(
            target=self._worker_loop, daemon=True, name="speaker-worker"
        )
        self._thread.start()

    def _enumerate_voices(self) -> VoiceCatalog:
        if self._synthesis is None:
            return VoiceCatalog()
        try:
            return VoiceCatalog(self._synthesis.list_voices())
        except SpeechBackendError as e:
            logger.warning(f"Could not enumerate voices: {e}")
            return VoiceCatalog()

    def _backends(self) -> list:
        return [b for b in (self._synthesis, self._process) if b is not None]

    # ---- Worker ----

    def _worker_loop(self):
        while self._running:
            try:
                task = self._tasks.get(timeout=0.5)
            except queue.Empty:
                continue
            if task is None:
                break

            fn, args, kwargs, result_q, ticket = task
            if ticket is not None and not ticket.claim():
                logger.debug(f"Skipping {fn.__name__}: caller gave up waiting.")
                continue
            try:
                result = fn(*args, **kwargs)
                if result_q is not None:
                    result_q.put(("ok", result))
            except Exception as e:
                if result_q is not None:
                    result_q.put(("error", e))
                else:
                    logger.error(f"Speaker task {fn.__name__} failed: {e}", exc_info=True)

    def _call(self, fn, *args, **kwargs):
        """Run ``fn`` on the worker thread and return its result.

        A call that times out before the worker picks it up is dropped, so a
        raised timeout always means the operation had no effect. Once started,
        the call is waited for.
        """
        if threading.current_thread() is self._thread:
            return fn(*args, **kwargs)
        if not self._thread.is_alive():
            raise SpeechcastError("Speaker has been shut down")
        result_q = queue.Queue()
        ticket = _Ticket()
        self._tasks.put((fn, args, kwargs, result_q, ticket))
        try:
            status, data = result_q.get(timeout=self._call_timeout)
        except queue.Empty:
            if ticket.abandon():
                raise SpeechcastError(
                    f"Speaker worker did not answer {fn.__name__} within {self._call_timeout}s"
                )
            status, data = result_q.get()
        if status == "error":
            raise data
        return data

    def _post(self, fn, *args, **kwargs):
        """Queue ``fn`` for the worker thread without waiting."""
        self._tasks.put((fn, args, kwargs, None, None))

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait until every signal posted so far has been handled."""
        if timeout is None:
            self._call(lambda: None)
            return
        saved = self._call_timeout
        self._call_timeout = timeout
        try:
            self._call(lambda: None)
        finally:
            self._call_timeout = saved

    # ---- Read-only state ----

    @property
    def backend(self) -> BackendKind:
        return self._state.backend

    @property
    def is_speaking(self) -> bool:
        return self._state.is_speaking

    @property
    def current_text(self) -> str:
        return self._state.current_text

    @property
    def spoken_sentence(self) -> str:
        """Last reported spoken-so-far text."""
        return self._spoken_sentence

    @property
    def synthesizer_program(self) -> str:
        """Currently configured external speech program ("" if none)."""
        return self._process.program

    # ---- Subscriptions ----

    def subscribe(self, callback, event_type: Optional[type] = None):
        self.events.subscribe(callback, event_type)

    def unsubscribe(self, callback, event_type: Optional[type] = None):
        self.events.unsubscribe(callback, event_type)

    def drain_events(self) -> list:
        return self.events.drain_events()

    # ---- Backend selection ----

    def select_voice(self, voice: Union[VoiceDescriptor, str]) -> SelectResult:
        """Use the synthesis engine with ``voice``.

        Raises VoiceSelectionFailed (backend unchanged) if the voice is not in
        the catalog or the engine refuses it.
        """
        return self._call(self._select_voice, voice)

    def _select_voice(self, voice) -> SelectResult:
        descriptor = voice if isinstance(voice, VoiceDescriptor) else self.voices.get(voice)
        if descriptor is None or descriptor not in self.voices:
            raise VoiceSelectionFailed(f"Unknown voice: {voice}")
        if self._synthesis is None:
            raise VoiceSelectionFailed("No synthesis engine available")
        if not self._synthesis.select_voice(descriptor):
            raise VoiceSelectionFailed(f"Synthesis engine refused voice: {descriptor.id}")
        self._state.set_backend(BackendKind.SYNTHESIS)
        logger.info(f"Backend: synthesis, voice '{descriptor.name}'.")
        return SelectResult.SELECTED

    def select_external_program(self, path: str) -> SelectResult:
        """Use an external program, or clear it with an empty path.

        A non-empty path is probed first, which launches it once without
        arguments. Raises ProgramUnavailable (backend unchanged) on failure.
        """
        return self._call(self._select_external_program, path)

    def _select_external_program(self, path: str) -> SelectResult:
        path = (path or "").strip()
        if not path:
            self._process.clear()
            self._state.set_backend(BackendKind.NONE)
            logger.info("External program cleared; no backend selected.")
            return SelectResult.CLEARED

        if not self._process.validate(path):
            raise ProgramUnavailable(f"Cannot launch external program: {path}")
        self._process.set_program(path)
        self._state.set_backend(BackendKind.EXTERNAL_PROCESS)
        logger.info(f"Backend: external program '{path}'.")
        return SelectResult.SELECTED

    # ---- Speaking ----

    def speak_sentence(self, text: str) -> bool:
        """Start speaking ``text`` on the selected backend.

        Returns once the utterance is dispatched; False if nothing was
        dispatched (no backend, or empty text). Raises SessionBusy while an
        utterance is active.
        """
        return self._call(self._speak_sentence, text)

    def _speak_sentence(self, text: str) -> bool:
        if self._state.is_speaking:
            raise SessionBusy(f"Already speaking: {self._state.current_text!r}")

        backend = self._state.backend
        if backend is BackendKind.NONE:
            logger.debug("speak_sentence ignored: no backend selected.")
            return False

        text = self._normalizer(text or "")
        if not text:
            logger.debug("speak_sentence ignored: empty text.")
            return False

        utterance_id = self._state.try_begin(text)
        if utterance_id is None:
            raise SessionBusy(f"Already speaking: {self._state.current_text!r}")
        self._spoken_sentence = ""
        logger.info(f"[{backend.value}] Speaking utterance {utterance_id}: {text[:80]!r}")

        if backend is BackendKind.EXTERNAL_PROCESS:
            # No progress channel: report the whole text up front
            self._emit_spoken(self._state.advance(len(text)))
            try:
                self._process.speak(text, utterance_id)
            except SpeechBackendError as e:
                self._finish(utterance_id, canceled=True)
                raise ProgramUnavailable(str(e)) from e
        else:
            try:
                if self._synthesis is None:
                    raise SpeechBackendError("No synthesis engine available")
                self._synthesis.speak(text, utterance_id)
            except SpeechBackendError:
                self._finish(utterance_id, canceled=True)
                raise
        return True

    def cancel(self) -> bool:
        """Abort the active utterance. Returns False if nothing was speaking."""
        return self._call(self._cancel)

    def _cancel(self) -> bool:
        if not self._state.is_speaking:
            return False
        utterance_id = self._state.utterance_id
        adapter = (
            self._process
            if self._state.speaking_backend is BackendKind.EXTERNAL_PROCESS
            else self._synthesis
        )
        logger.info(f"Canceling utterance {utterance_id}.")
        try:
            if adapter is not None:
                adapter.stop()
        except Exception as e:
            logger.error(f"Backend stop failed: {e}", exc_info=True)
        self._finish(utterance_id, canceled=True)
        return True

    # ---- Backend signals ----

    def on_adapter_progress(self, position: int, count: int, utterance_id: Optional[int] = None):
        """Report that the engine reached ``position`` (+``count`` chars)."""
        self._post(self._handle_progress, position, count, utterance_id)

    def on_adapter_done(self, canceled: bool, utterance_id: Optional[int] = None):
        """Report that the backend finished the utterance."""
        self._post(self._finish, utterance_id, canceled)

    def _handle_progress(self, position: int, count: int, utterance_id: Optional[int]):
        if not self._state.is_current(utterance_id):
            logger.debug(f"Stale progress ({position}, {count}) for utterance {utterance_id}.")
            return
        index = position + count
        if index > 0:
            index = max(index - 1, 0)
        index = min(index, len(self._state.current_text))
        self._emit_spoken(self._state.advance(index))

    def _finish(self, utterance_id: Optional[int], canceled: bool):
        if not self._state.finish(utterance_id):
            logger.debug(f"Duplicate completion for utterance {utterance_id} ignored.")
            return
        logger.info(f"Utterance finished (canceled={canceled}).")
        self.events.emit(SpeakingEnd(canceled=bool(canceled)))

    def _emit_spoken(self, text: str):
        self._spoken_sentence = text
        self.events.emit(SpokenSentence(text=text))

    # ---- Lifecycle ----

    def shutdown(self):
        """Cancel any utterance, stop the worker and release the backends."""
        logger.info("Shutting down speaker...")
        if self._thread.is_alive():
            try:
                self.cancel()
            except SpeechcastError as e:
                logger.warning(f"Cancel during shutdown failed: {e}")
            self._running = False
            self._tasks.put(None)
            self._thread.join(timeout=3)
        for backend in self._backends():
            try:
                backend.cleanup()
            except Exception as e:
                logger.error(f"Backend cleanup failed: {e}")
        logger.info("Speaker shut down.")
