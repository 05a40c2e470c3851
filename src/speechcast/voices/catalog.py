"""Read-only catalog of installed synthesis voices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceDescriptor:
    """An installed voice as reported by the speech subsystem."""
    id: str
    name: str
    languages: tuple = ()
    gender: Optional[str] = None
    age: Optional[int] = None

    @classmethod
    def from_engine_voice(cls, voice) -> "VoiceDescriptor":
        """Build from a pyttsx3 ``Voice`` (or anything shaped like one)."""
        languages = getattr(voice, "languages", None) or ()
        return cls(
            id=str(voice.id),
            name=str(getattr(voice, "name", None) or voice.id),
            languages=tuple(
                lang.decode("utf-8", "ignore") if isinstance(lang, bytes) else str(lang)
                for lang in languages
            ),
            gender=getattr(voice, "gender", None),
            age=getattr(voice, "age", None),
        )

    def __str__(self) -> str:
        return self.name


class VoiceCatalog:
    """Ordered, immutable list of voices, in the subsystem's enumeration order."""

    def __init__(self, voices: Iterable[VoiceDescriptor] = ()):
        self._voices = tuple(voices)
        self._by_id = {v.id: v for v in self._voices}
        logger.debug(f"Voice catalog: {len(self._voices)} voice(s).")

    def __len__(self) -> int:
        return len(self._voices)

    def __iter__(self) -> Iterator[VoiceDescriptor]:
        return iter(self._voices)

    def __getitem__(self, index: int) -> VoiceDescriptor:
        return self._voices[index]

    def __contains__(self, voice) -> bool:
        if isinstance(voice, VoiceDescriptor):
            return self._by_id.get(voice.id) == voice
        return voice in self._by_id

    def get(self, voice_id: str) -> Optional[VoiceDescriptor]:
        return self._by_id.get(voice_id)

    def find(self, key: str) -> Optional[VoiceDescriptor]:
        """Look a voice up by id, then by name (case-insensitive), then by index."""
        if key in self._by_id:
            return self._by_id[key]
        lowered = key.strip().lower()
        for voice in self._voices:
            if voice.name.lower() == lowered:
                return voice
        if lowered.isdigit() and int(lowered) < len(self._voices):
            return self._voices[int(lowered)]
        return None
