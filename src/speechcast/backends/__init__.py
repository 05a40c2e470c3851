"""Speech backends: in-process synthesis and external programs."""

from speechcast.backends.base import SpeechBackend
from speechcast.backends.process import ProcessAdapter
from speechcast.backends.synthesis import SynthesisAdapter

__all__ = ["SpeechBackend", "ProcessAdapter", "SynthesisAdapter"]
