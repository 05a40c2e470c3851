"""SpeechCast: dispatch short utterances to a speech synthesis engine or an external program."""

__version__ = "0.1.0"
