"""pyttsx3 synthesis backend with word-level progress.

pyttsx3 uses Windows COM objects (SAPI5) which are apartment-threaded.
Calling the engine from arbitrary threads can deadlock, so the engine lives
in its own dedicated thread and every call is marshaled onto it.
"""

import logging
import queue
import threading
from typing import Callable, Optional

from speechcast.backends.base import SpeechBackend
from speechcast.core.constants import (
    CALL_TIMEOUT,
    DEFAULT_RATE,
    DEFAULT_VOLUME,
    ENGINE_INIT_TIMEOUT,
)
from speechcast.core.exceptions import SpeechBackendError
from speechcast.voices.catalog import VoiceDescriptor

logger = logging.getLogger(__name__)


def _default_engine_factory():
    import pyttsx3
    return pyttsx3.init()


class SynthesisAdapter(SpeechBackend):
    """Speaks through the OS speech subsystem via pyttsx3 (SAPI5 / NSSpeech / espeak).

    Progress comes from the engine's ``started-word`` callback, completion
    from ``finished-utterance``.
    """

    def __init__(
        self,
        rate: int = DEFAULT_RATE,
        volume: float = DEFAULT_VOLUME,
        init_timeout: float = ENGINE_INIT_TIMEOUT,
        engine_factory: Optional[Callable] = None,
    ):
        super().__init__()
        self._rate = rate
        self._volume = volume
        self._engine_factory = engine_factory or _default_engine_factory
        self._engine = None
        self._init_error: Optional[str] = None
        # Task queue: (kind, args, result_queue or None)
        self._task_queue = queue.Queue()
        self._running = True
        self._ready = threading.Event()

        # Utterance bookkeeping, touched from the engine thread and stop()
        self._latest_id = 0
        self._stop_upto = 0
        self._active_id: Optional[int] = None
        self._reported = True

        # Voice ids known to the engine, and a voice to apply before the next say
        self._voice_ids: frozenset = frozenset()
        self._pending_voice: Optional[str] = None

        self._thread = threading.Thread(
            target=self._engine_loop, daemon=True, name="synthesis-worker"
        )
        self._thread.start()
        if not self._ready.wait(timeout=init_timeout):
            self._running = False
            raise SpeechBackendError(
                f"Synthesis engine failed to initialize within {init_timeout}s"
            )
        if self._init_error is not None:
            raise SpeechBackendError(f"Synthesis engine init failed: {self._init_error}")

    # ---- Engine thread ----

    def _engine_loop(self):
        try:
            engine = self._engine_factory()
            engine.setProperty("rate", self._rate)
            engine.setProperty("volume", self._volume)
            engine.connect("started-word", self._on_word)
            engine.connect("finished-utterance", self._on_finished)
            self._voice_ids = frozenset(v.id for v in engine.getProperty("voices") or [])
            self._engine = engine
            logger.info("Synthesis engine thread started.")
        except Exception as e:
            logger.error(f"Synthesis engine init failed: {e}")
            self._init_error = str(e)
            self._ready.set()
            return
        self._ready.set()

        while self._running:
            try:
                task = self._task_queue.get(timeout=0.5)
            except queue.Empty:
                continue
            if task is None:
                break

            kind, args, result_q = task
            try:
                result = getattr(self, f"_do_{kind}")(*args)
                if result_q is not None:
                    result_q.put(("ok", result))
            except Exception as e:
                logger.error(f"Synthesis task '{kind}' failed: {e}", exc_info=True)
                if result_q is not None:
                    result_q.put(("error", str(e)))

        try:
            engine.stop()
        except Exception as e:
            logger.debug(f"Engine stop on shutdown failed: {e}")

    def _do_say(self, text: str, utterance_id: int):
        self._active_id = utterance_id
        self._reported = False
        if utterance_id <= self._stop_upto:
            self._report_end(canceled=True)
            return
        try:
            self._apply_pending_voice()
            self._engine.say(text, str(utterance_id))
            self._engine.runAndWait()
        except Exception as e:
            logger.error(f"Synthesis of utterance {utterance_id} failed: {e}")
            self._report_end(canceled=True)
            return
        # Some drivers skip finished-utterance after stop()
        self._report_end(canceled=utterance_id <= self._stop_upto)

    def _apply_pending_voice(self):
        voice_id, self._pending_voice = self._pending_voice, None
        if voice_id is not None and voice_id != self._engine.getProperty("voice"):
            self._engine.setProperty("voice", voice_id)

    def _do_voices(self) -> list:
        voices = self._engine.getProperty("voices") or []
        self._voice_ids = frozenset(v.id for v in voices)
        return [VoiceDescriptor.from_engine_voice(v) for v in voices]

    def _on_word(self, name, location, length):
        utterance_id = self._active_id
        if utterance_id is None:
            return
        if utterance_id <= self._stop_upto:
            # stop() is only safe from inside a callback
            self._engine.stop()
            return
        self._signal_progress(utterance_id, location, length)

    def _on_finished(self, name, completed):
        if self._active_id is None:
            return
        self._report_end(canceled=(not completed) or self._active_id <= self._stop_upto)

    def _report_end(self, canceled: bool):
        if self._reported:
            return
        self._reported = True
        utterance_id = self._active_id
        self._active_id = None
        self._signal_completion(utterance_id, canceled)

    # ---- Caller side ----

    def _call(self, kind: str, *args, timeout: float = CALL_TIMEOUT):
        """Run a task on the engine thread and wait for its result."""
        if not self._thread.is_alive():
            raise SpeechBackendError("Synthesis engine thread is not running")
        result_q = queue.Queue()
        self._task_queue.put((kind, args, result_q))
        try:
            status, data = result_q.get(timeout=timeout)
        except queue.Empty:
            raise SpeechBackendError(f"Synthesis engine busy: '{kind}' timed out after {timeout}s")
        if status == "error":
            raise SpeechBackendError(f"Synthesis task '{kind}' failed: {data}")
        return data

    def speak(self, text: str, utterance_id: int) -> None:
        if not self._thread.is_alive():
            raise SpeechBackendError("Synthesis engine thread is not running")
        self._latest_id = utterance_id
        self._task_queue.put(("say", (text, utterance_id), None))

    def stop(self) -> None:
        """Cancel the latest utterance.

        A queued utterance is dropped before it starts. One already playing is
        stopped from the engine's next started-word callback, so the word in
        progress finishes, and if the driver sends no further word callbacks
        the rest of the utterance plays out even though the speaker has
        already reported it canceled.
        """
        self._stop_upto = self._latest_id

    def list_voices(self) -> list:
        """Voices installed in the speech subsystem, in enumeration order."""
        return self._call("voices")

    def select_voice(self, voice: VoiceDescriptor) -> bool:
        """Use ``voice`` from the next utterance on. False if the engine lacks it.

        Never waits on the engine thread, so it is safe while speaking.
        """
        if voice.id not in self._voice_ids:
            return False
        self._pending_voice = voice.id
        return True

    def cleanup(self) -> None:
        self.stop()
        self._running = False
        self._task_queue.put(None)
        if self._thread.is_alive():
            self._thread.join(timeout=3)
