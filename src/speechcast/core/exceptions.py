"""Exception hierarchy for SpeechCast."""


class SpeechcastError(Exception):
    """Base exception for all SpeechCast errors."""


class ConfigError(SpeechcastError):
    """Configuration loading or validation error."""


class SpeechBackendError(SpeechcastError):
    """A speech backend could not start or serve an utterance."""


class VoiceSelectionFailed(SpeechcastError):
    """The requested voice is unknown or the engine refused it."""


class ProgramUnavailable(SpeechcastError):
    """The external speech program could not be launched."""


class SessionBusy(SpeechcastError):
    """An utterance is already being spoken."""
