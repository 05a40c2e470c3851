"""External-program speech backend.

The program is started with the utterance text as its only argument and
the utterance ends when the process exits. There is no progress channel.
"""

import logging
import shutil
import subprocess
import threading
from typing import Optional

import psutil

from speechcast.backends.base import SpeechBackend
from speechcast.core.constants import TERMINATE_TIMEOUT
from speechcast.core.exceptions import SpeechBackendError

logger = logging.getLogger(__name__)

_QUIET = dict(
    stdin=subprocess.DEVNULL,
    stdout=subprocess.DEVNULL,
    stderr=subprocess.DEVNULL,
)


class ProcessAdapter(SpeechBackend):
    """Speaks by launching an external command-line program per utterance."""

    def __init__(
        self,
        probe_launch: bool = True,
        terminate_timeout: float = TERMINATE_TIMEOUT,
    ):
        super().__init__()
        self.probe_launch = probe_launch
        self.terminate_timeout = terminate_timeout
        self._program = ""
        self._lock = threading.Lock()
        self._proc: Optional[psutil.Popen] = None
        self._utterance_id: Optional[int] = None
        self._stop_requested = False

    @property
    def program(self) -> str:
        return self._program

    def set_program(self, path: str):
        self._program = path

    def clear(self):
        self._program = ""

    def validate(self, path: str) -> bool:
        """Check that ``path`` can be started.

        With ``probe_launch`` the program is really launched once without
        arguments and left to run; its exit is reaped in the background.
        """
        if not path:
            return False
        if not self.probe_launch:
            return shutil.which(path) is not None

        try:
            proc = psutil.Popen([path], **_QUIET)
        except (OSError, ValueError, psutil.Error) as e:
            logger.info(f"Probe launch of '{path}' failed: {e}")
            return False
        logger.info(f"Probe launch of '{path}' started (pid {proc.pid}).")
        threading.Thread(
            target=proc.wait, daemon=True, name=f"probe-reaper-{proc.pid}"
        ).start()
        return True

    def speak(self, text: str, utterance_id: int) -> None:
        if not self._program:
            raise SpeechBackendError("No external speech program selected")
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                raise SpeechBackendError("External speech program is still running")
            try:
                proc = psutil.Popen([self._program, text], **_QUIET)
            except (OSError, ValueError, psutil.Error) as e:
                raise SpeechBackendError(f"Could not launch '{self._program}': {e}") from e
            self._proc = proc
            self._utterance_id = utterance_id
            self._stop_requested = False

        logger.info(f"Launched '{self._program}' (pid {proc.pid}) for utterance {utterance_id}.")
        threading.Thread(
            target=self._watch, args=(proc, utterance_id),
            daemon=True, name=f"process-watch-{proc.pid}",
        ).start()

    def _watch(self, proc: psutil.Popen, utterance_id: int):
        """Wait for the child to exit, then report completion."""
        try:
            returncode = proc.wait()
        except Exception as e:
            logger.error(f"Waiting for pid {proc.pid} failed: {e}")
            returncode = None
        with self._lock:
            canceled = self._stop_requested and self._utterance_id == utterance_id
            if self._proc is proc:
                self._proc = None
                self._utterance_id = None
        logger.debug(f"pid {proc.pid} exited with {returncode} (canceled={canceled}).")
        self._signal_completion(utterance_id, canceled)

    def stop(self) -> None:
        """Terminate the running program and anything it spawned."""
        with self._lock:
            proc = self._proc
            if proc is None:
                return
            self._stop_requested = True

        try:
            targets = proc.children(recursive=True) + [proc]
        except psutil.NoSuchProcess:
            return
        for p in targets:
            try:
                p.terminate()
            except psutil.NoSuchProcess:
                pass
        _, alive = psutil.wait_procs(targets, timeout=self.terminate_timeout)
        for p in alive:
            logger.warning(f"pid {p.pid} ignored terminate, killing.")
            try:
                p.kill()
            except psutil.NoSuchProcess:
                pass

    def cleanup(self) -> None:
        self.stop()
