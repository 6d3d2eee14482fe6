import pytest

from bridge.locales import (
    SUPPORTED_LOCALES,
    LocaleResolver,
    normalize_locale,
    parse_accept_language,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("en", "en"),
        ("EN_us", "en"),
        ("  fr-FR ", "fr"),
        ("jp", "ja"),
        ("zh-TW", "zh"),
        ("zh-Hant", "zh"),
        ("pt-BR", "pt"),
        ("de-AT", "de"),
        ("xx-YY", None),
        ("", None),
        ("*", None),
        (None, None),
        (42, None),
    ],
)
def test_normalize_locale(raw: object, expected: object) -> None:
    assert normalize_locale(raw) == expected


def test_accept_language_sorted_by_weight() -> None:
    parsed = parse_accept_language("fr;q=0.4, ja-JP, de;q=0.9, es;q=bogus")
    assert parsed == [("ja-JP", 1.0), ("es", 1.0), ("de", 0.9), ("fr", 0.4)]


def test_explicit_locale_wins_over_header() -> None:
    resolver = LocaleResolver("en")
    assert resolver.resolve("es-MX", "ja,fr;q=0.5") == "es"


def test_header_used_when_explicit_unsupported() -> None:
    resolver = LocaleResolver("en")
    assert resolver.resolve("xx", "ko;q=1.0, zh-TW;q=0.8, fr;q=0.5") == "zh"


def test_header_zero_weight_is_skipped() -> None:
    resolver = LocaleResolver("de")
    assert resolver.resolve(None, "fr;q=0") == "de"


def test_default_used_when_nothing_matches() -> None:
    resolver = LocaleResolver("ja")
    assert resolver.resolve("xx-YY", "ko, *;q=0.1") == "ja"


def test_unsupported_default_falls_back_to_english() -> None:
    resolver = LocaleResolver("klingon")
    assert resolver.default_locale == "en"


@pytest.mark.parametrize(
    "explicit, header",
    [
        ("xx-YY", None),
        (None, "xx-YY"),
        ("", ""),
        ({"not": "a string"}, ";;;,,q=abc"),
        ("-", "-;q=-1"),
        ("zh-", "pt_"),
    ],
)
def test_resolve_always_returns_supported_locale(explicit: object, header: object) -> None:
    resolved = LocaleResolver("en").resolve(explicit, header)
    assert resolved in SUPPORTED_LOCALES


def test_language_label_matches_locale() -> None:
    resolver = LocaleResolver()
    assert resolver.language_label("zh") == "Simplified Chinese"
    assert resolver.language_label("pt") == "Portuguese"
