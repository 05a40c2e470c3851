"""Tests for the external-program adapter."""

import threading
from unittest.mock import patch

import pytest

from speechcast.backends.process import ProcessAdapter
from speechcast.core.events import SpeakingEnd, SpokenSentence
from speechcast.core.state import BackendKind
from speechcast.speaker import Speaker

from conftest import FakeSynthesis, posix_only, wait_for


class Exits:
    def __init__(self):
        self.completions = []
        self.done = threading.Event()

    def on_completion(self, canceled, utterance_id=None):
        self.completions.append((utterance_id, canceled))
        self.done.set()


@pytest.fixture
def exits():
    return Exits()


@pytest.fixture
def adapter(exits):
    a = ProcessAdapter(terminate_timeout=2)
    a.connect(None, exits.on_completion)
    yield a
    a.cleanup()


class TestValidate:
    def test_empty_path(self, adapter):
        assert adapter.validate("") is False

    def test_missing_program(self, adapter, tmp_path):
        assert adapter.validate(str(tmp_path / "no-such-program")) is False

    def test_probe_really_launches_program(self, adapter):
        with patch("speechcast.backends.process.psutil.Popen") as mock_popen:
            mock_popen.return_value.pid = 4242
            assert adapter.validate("/opt/voices/say") is True
        mock_popen.assert_called_once()
        assert mock_popen.call_args[0][0] == ["/opt/voices/say"]

    def test_probe_launch_failure(self, adapter):
        with patch("speechcast.backends.process.psutil.Popen",
                   side_effect=PermissionError("denied")):
            assert adapter.validate("/opt/voices/say") is False

    @posix_only
    def test_probe_launch_runs_script(self, adapter, make_script, tmp_path):
        marker = tmp_path / "probed"
        script = make_script(f'echo "args:$#" > "{marker}"')
        assert adapter.validate(script) is True
        for _ in range(50):
            if marker.exists() and marker.read_text().strip():
                break
            threading.Event().wait(0.1)
        assert marker.read_text().strip() == "args:0"

    def test_no_launch_mode_resolves_only(self):
        a = ProcessAdapter(probe_launch=False)
        with patch("speechcast.backends.process.psutil.Popen") as mock_popen:
            with patch("speechcast.backends.process.shutil.which", return_value="/bin/say"):
                assert a.validate("say") is True
        mock_popen.assert_not_called()

    def test_no_launch_mode_missing(self):
        a = ProcessAdapter(probe_launch=False)
        with patch("speechcast.backends.process.shutil.which", return_value=None):
            assert a.validate("say") is False


class TestProgramPath:
    def test_set_and_clear(self, adapter):
        adapter.set_program("/usr/bin/say")
        assert adapter.program == "/usr/bin/say"
        adapter.clear()
        assert adapter.program == ""

    def test_speak_without_program(self, adapter):
        from speechcast.core.exceptions import SpeechBackendError

        with pytest.raises(SpeechBackendError):
            adapter.speak("Hello", 1)

    def test_speak_with_missing_program(self, adapter, tmp_path):
        from speechcast.core.exceptions import SpeechBackendError

        adapter.set_program(str(tmp_path / "gone"))
        with pytest.raises(SpeechBackendError):
            adapter.speak("Hello", 1)


@posix_only
class TestLaunch:
    def test_text_passed_as_single_argument(self, adapter, exits, make_script, tmp_path):
        out = tmp_path / "said.txt"
        adapter.set_program(make_script(f'printf "%s|%s" "$#" "$1" > "{out}"'))
        adapter.speak("Hello, big world", 5)
        wait_for(exits.done)
        assert out.read_text() == "1|Hello, big world"
        assert exits.completions == [(5, False)]

    def test_nonzero_exit_is_still_completion(self, adapter, exits, make_script):
        adapter.set_program(make_script("exit 3"))
        adapter.speak("Hello", 6)
        wait_for(exits.done)
        assert exits.completions == [(6, False)]

    def test_stop_terminates_child(self, adapter, exits, make_script):
        adapter.set_program(make_script("sleep 30"))
        adapter.speak("Hello", 7)
        assert not exits.done.wait(0.2)
        adapter.stop()
        wait_for(exits.done)
        assert exits.completions == [(7, True)]

    def test_stop_without_child_is_noop(self, adapter, exits):
        adapter.stop()
        assert exits.completions == []


@posix_only
class TestSpeakerWithProgram:
    def test_program_end_to_end(self, make_script, tmp_path):
        out = tmp_path / "said.txt"
        script = make_script(f'[ "$#" -gt 0 ] && printf "%s" "$1" > "{out}"')
        speaker = Speaker(synthesis=FakeSynthesis(), process=ProcessAdapter())
        ended = threading.Event()
        events = []
        speaker.subscribe(events.append)
        speaker.subscribe(lambda e: ended.set(), SpeakingEnd)
        try:
            speaker.select_external_program(script)
            assert speaker.backend is BackendKind.EXTERNAL_PROCESS
            assert speaker.speak_sentence("Test") is True
            wait_for(ended)
            speaker.flush()
            assert events == [SpokenSentence("Test"), SpeakingEnd(canceled=False)]
            assert speaker.is_speaking is False
            assert out.read_text() == "Test"
        finally:
            speaker.shutdown()

    def test_cancel_end_to_end(self, make_script):
        script = make_script('[ "$#" -gt 0 ] && exec sleep 30')
        speaker = Speaker(synthesis=FakeSynthesis(), process=ProcessAdapter(terminate_timeout=2))
        events = []
        speaker.subscribe(events.append)
        try:
            speaker.select_external_program(script)
            speaker.speak_sentence("Test")
            assert speaker.cancel() is True
            speaker.flush()
            assert events == [SpokenSentence("Test"), SpeakingEnd(canceled=True)]
            # The watcher's own exit report arrives later and is dropped
            threading.Event().wait(0.3)
            speaker.flush()
            assert events.count(SpeakingEnd(canceled=True)) == 1
        finally:
            speaker.shutdown()
