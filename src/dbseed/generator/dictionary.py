"""Bundled word lists used to fill text columns."""

from __future__ import annotations

import logging
from functools import lru_cache
from importlib import resources

logger = logging.getLogger(__name__)

_RESOURCE_PACKAGE = "dbseed.resources.dictionaries"
_FILES = {
    "english": "english-words.txt",
    "spanish": "spanish-words.txt",
}


@lru_cache(maxsize=None)
def _read_words(language: str) -> tuple[str, ...]:
    filename = _FILES[language]
    try:
        text = resources.files(_RESOURCE_PACKAGE).joinpath(filename).read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        logger.warning(f"Dictionary {filename} not found; {language} words disabled")
        return ()
    return tuple(w for w in text.split() if w)


def load_words(use_english: bool = False, use_spanish: bool = False) -> list[str]:
    """Return the combined word list for the enabled languages."""
    words: list[str] = []
    if use_english:
        words.extend(_read_words("english"))
    if use_spanish:
        words.extend(_read_words("spanish"))
    return words
