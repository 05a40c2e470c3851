"""Factory for building a Speaker from config."""

import logging
from typing import Optional

from speechcast.backends.process import ProcessAdapter
from speechcast.backends.synthesis import SynthesisAdapter
from speechcast.core.config import AppConfig
from speechcast.core.exceptions import SpeechcastError
from speechcast.speaker import Speaker
from speechcast.text.normalize import TextNormalizer

logger = logging.getLogger(__name__)


def create_synthesis_adapter(config: AppConfig) -> Optional[SynthesisAdapter]:
    """Start the pyttsx3 engine, or return None if it is unavailable."""
    syn_cfg = config.synthesis
    try:
        return SynthesisAdapter(
            rate=syn_cfg.rate,
            volume=syn_cfg.volume,
            init_timeout=syn_cfg.init_timeout,
        )
    except Exception as e:
        logger.warning(f"Synthesis engine unavailable, external programs only: {e}")
        return None


def create_speaker(config: AppConfig, apply_defaults: bool = True) -> Speaker:
    """Build a Speaker with both backends.

    With ``apply_defaults`` the configured voice and external program are
    selected; the program wins if both are set. Selection failures are
    logged and leave the backend unselected.
    """
    ext_cfg = config.external
    speaker = Speaker(
        synthesis=create_synthesis_adapter(config),
        process=ProcessAdapter(
            probe_launch=ext_cfg.probe_launch,
            terminate_timeout=ext_cfg.terminate_timeout,
        ),
        normalizer=TextNormalizer.from_config(config.normalization),
    )
    if not apply_defaults:
        return speaker

    voice_key = config.synthesis.voice
    if voice_key:
        voice = speaker.voices.find(str(voice_key))
        try:
            speaker.select_voice(voice if voice is not None else str(voice_key))
        except SpeechcastError as e:
            logger.warning(f"Configured voice not selected: {e}")

    if ext_cfg.program:
        try:
            speaker.select_external_program(ext_cfg.program)
        except SpeechcastError as e:
            logger.warning(f"Configured program not selected: {e}")

    return speaker
