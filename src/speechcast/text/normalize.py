"""Text clean-up applied before an utterance is dispatched."""

import re
import unicodedata
from typing import Optional

_WHITESPACE_RE = re.compile(r"\s+")


class TextNormalizer:
    """Callable that prepares raw input text for a speech backend."""

    def __init__(
        self,
        unicode_form: Optional[str] = "NFKC",
        collapse_whitespace: bool = True,
        strip_control: bool = True,
    ):
        if unicode_form is not None and unicode_form not in ("NFC", "NFKC", "NFD", "NFKD"):
            raise ValueError(f"Unknown unicode normal form: {unicode_form}")
        self.unicode_form = unicode_form
        self.collapse_whitespace = collapse_whitespace
        self.strip_control = strip_control

    @classmethod
    def from_config(cls, config) -> "TextNormalizer":
        return cls(
            unicode_form=config.unicode_form,
            collapse_whitespace=config.collapse_whitespace,
            strip_control=config.strip_control,
        )

    def __call__(self, text: str) -> str:
        if not text:
            return ""
        if self.unicode_form:
            text = unicodedata.normalize(self.unicode_form, text)
        if self.strip_control:
            # Keep whitespace controls (tab, newline) for the collapse step
            text = "".join(
                ch for ch in text
                if ch.isspace() or unicodedata.category(ch)[0] != "C"
            )
        if self.collapse_whitespace:
            text = _WHITESPACE_RE.sub(" ", text)
        return text.strip()
