from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

SUPPORTED_LOCALES: Tuple[str, ...] = ("en", "es", "fr", "de", "ja", "zh", "it", "nl", "pt")
FALLBACK_LOCALE = "en"

MODEL_LANGUAGE_LABELS: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
    "zh": "Simplified Chinese",
    "it": "Italian",
    "nl": "Dutch",
    "pt": "Portuguese",
}

LOCALE_ALIASES: Dict[str, str] = {
    "jp": "ja",
    "ja-jp": "ja",
    "en-us": "en",
    "en-gb": "en",
    "es-es": "es",
    "es-mx": "es",
    "fr-fr": "fr",
    "de-de": "de",
    "it-it": "it",
    "nl-nl": "nl",
    "nl-be": "nl",
    "pt-br": "pt",
    "pt-pt": "pt",
    "zh-cn": "zh",
    "zh-sg": "zh",
    "zh-hans": "zh",
    "zh-tw": "zh",
    "zh-hk": "zh",
    "zh-hant": "zh",
}


def normalize_locale(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower().replace("_", "-")
    if not normalized:
        return None
    if normalized in SUPPORTED_LOCALES:
        return normalized
    alias = LOCALE_ALIASES.get(normalized)
    if alias:
        return alias
    base = normalized.split("-", 1)[0]
    return base if base in SUPPORTED_LOCALES else None


def _parse_quality(params: List[str]) -> float:
    for param in params:
        key, _, value = param.partition("=")
        if key.strip().lower() != "q":
            continue
        try:
            quality = float(value.strip())
        except ValueError:
            return 1.0
        if math.isnan(quality):
            return 1.0
        return quality
    return 1.0


def parse_accept_language(header: Optional[str]) -> List[Tuple[str, float]]:
    """Split an Accept-Language value into (tag, q) pairs, highest q first.

    Tags keep their header order among equal weights.
    """
    if not header:
        return []
    entries: List[Tuple[str, float]] = []
    for part in header.split(","):
        part = part.strip()
        if not part:
            continue
        pieces = [piece.strip() for piece in part.split(";")]
        tag = pieces[0]
        if not tag:
            continue
        entries.append((tag, _parse_quality(pieces[1:])))
    return sorted(entries, key=lambda entry: entry[1], reverse=True)


def locale_from_accept_language(header: Optional[str]) -> Optional[str]:
    for tag, quality in parse_accept_language(header):
        if quality <= 0:
            continue
        normalized = normalize_locale(tag)
        if normalized:
            return normalized
    return None


class LocaleResolver:
    def __init__(self, default_locale: str = FALLBACK_LOCALE) -> None:
        self.default_locale = normalize_locale(default_locale) or FALLBACK_LOCALE

    def resolve(self, explicit_locale: object = None, accept_language: Optional[str] = None) -> str:
        normalized = normalize_locale(explicit_locale)
        if normalized:
            return normalized
        from_header = locale_from_accept_language(accept_language)
        return from_header or self.default_locale

    def language_label(self, locale: str) -> str:
        return MODEL_LANGUAGE_LABELS.get(locale, MODEL_LANGUAGE_LABELS[self.default_locale])
