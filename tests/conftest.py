"""Shared test fixtures for SpeechCast."""

import os
import stat
import sys
import threading

import pytest

from speechcast.backends.base import SpeechBackend
from speechcast.core.config import AppConfig, ExternalConfig, SynthesisConfig
from speechcast.core.exceptions import SpeechBackendError
from speechcast.speaker import Speaker
from speechcast.voices.catalog import VoiceCatalog, VoiceDescriptor

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


class FakeEngineVoice:
    """Shaped like pyttsx3.voice.Voice."""

    def __init__(self, id, name, languages=(), gender=None, age=None):
        self.id = id
        self.name = name
        self.languages = list(languages)
        self.gender = gender
        self.age = age


class FakeEngine:
    """Minimal stand-in for a pyttsx3 engine.

    runAndWait() fires one started-word per word, then finished-utterance.
    Set ``gate`` to hold each utterance until the test releases it.
    """

    def __init__(self, voices=None, fire_finished=True, fail_say=False):
        self.properties = {
            "voices": voices if voices is not None else [
                FakeEngineVoice("voice-a", "Alice", ["en_US"], "female"),
                FakeEngineVoice("voice-b", "Bob", [b"en_GB"], "male"),
            ],
            "voice": "voice-a",
        }
        self.callbacks = {}
        self.queue = []
        self.fire_finished = fire_finished
        self.fail_say = fail_say
        self.gate = None
        self.stop_calls = 0
        self._stopped = False

    def setProperty(self, name, value):
        self.properties[name] = value

    def getProperty(self, name):
        return self.properties.get(name)

    def connect(self, topic, cb):
        self.callbacks[topic] = cb

    def say(self, text, name=None):
        if self.fail_say:
            raise RuntimeError("driver exploded")
        self.queue.append((text, name))

    def runAndWait(self):
        while self.queue:
            text, name = self.queue.pop(0)
            if self.gate is not None:
                self.gate.wait(timeout=5)
            location = 0
            for word in text.split(" "):
                if self._stopped:
                    break
                self.callbacks["started-word"](name, location, len(word))
                location += len(word) + 1
            completed = not self._stopped
            self._stopped = False
            if self.fire_finished:
                self.callbacks["finished-utterance"](name, completed)

    def stop(self):
        self.stop_calls += 1
        self._stopped = True


class FakeSynthesis(SpeechBackend):
    """Synthesis backend double driven by the test."""

    def __init__(self, voices=None, refuse=()):
        super().__init__()
        self._voices = voices if voices is not None else [
            VoiceDescriptor("voice-a", "Alice"),
            VoiceDescriptor("voice-b", "Bob"),
        ]
        self.refuse = set(refuse)
        self.selected = None
        self.spoken = []
        self.stop_calls = 0
        self.fail_speak = False

    def list_voices(self):
        return list(self._voices)

    def select_voice(self, voice):
        if voice.id in self.refuse:
            return False
        self.selected = voice
        return True

    def speak(self, text, utterance_id):
        if self.fail_speak:
            raise SpeechBackendError("engine gone")
        self.spoken.append((text, utterance_id))

    def stop(self):
        self.stop_calls += 1

    @property
    def last_id(self):
        return self.spoken[-1][1]

    def progress(self, position, count, utterance_id=None):
        self._signal_progress(utterance_id or self.last_id, position, count)

    def complete(self, canceled=False, utterance_id=None):
        self._signal_completion(utterance_id or self.last_id, canceled)


class FakeProcess(SpeechBackend):
    """Process backend double: no real launches."""

    def __init__(self, valid=("/usr/bin/say",)):
        super().__init__()
        self.valid = set(valid)
        self.program = ""
        self.probed = []
        self.launched = []
        self.stop_calls = 0
        self.fail_launch = False

    def validate(self, path):
        self.probed.append(path)
        return path in self.valid

    def set_program(self, path):
        self.program = path

    def clear(self):
        self.program = ""

    def speak(self, text, utterance_id):
        if self.fail_launch:
            raise SpeechBackendError(f"Could not launch '{self.program}'")
        self.launched.append(([self.program, text], utterance_id))

    def stop(self):
        self.stop_calls += 1

    @property
    def last_id(self):
        return self.launched[-1][1]

    def exit(self, canceled=False, utterance_id=None):
        self._signal_completion(utterance_id or self.last_id, canceled)


@pytest.fixture
def mock_config():
    """Minimal config for testing."""
    return AppConfig(
        synthesis=SynthesisConfig(rate=200, volume=0.5),
        external=ExternalConfig(program="", probe_launch=False),
        logging={"level": "DEBUG"},
    )


@pytest.fixture
def fake_synthesis():
    return FakeSynthesis()


@pytest.fixture
def fake_process():
    return FakeProcess()


@pytest.fixture
def speaker(fake_synthesis, fake_process):
    """Speaker over fake backends, shut down after the test."""
    spk = Speaker(synthesis=fake_synthesis, process=fake_process)
    yield spk
    spk.shutdown()


@pytest.fixture
def received(speaker):
    """Every event the speaker emits, in order."""
    events = []
    speaker.subscribe(events.append)
    return events


@pytest.fixture
def voices():
    return VoiceCatalog([
        VoiceDescriptor("voice-a", "Alice"),
        VoiceDescriptor("voice-b", "Bob"),
    ])


@pytest.fixture
def make_script(tmp_path):
    """Write an executable /bin/sh script and return its path."""
    def _make(body: str, name: str = "speak.sh") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return os.fspath(path)
    return _make


def wait_for(event: threading.Event, timeout: float = 5.0):
    assert event.wait(timeout), "timed out waiting for backend signal"
