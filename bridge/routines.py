from __future__ import annotations

from datetime import date
from typing import Dict, Tuple

from bridge.locales import FALLBACK_LOCALE
from bridge.normalize import score_to_protocol
from bridge.schemas import DailyRoutine

# Sunday first: index with date.isoweekday() % 7.
WEEKDAY_VARIANTS: Tuple[str, ...] = (
    "reset",
    "boost",
    "sculpt",
    "release",
    "balance",
    "deep",
    "restore",
)

PROTOCOL_DURATIONS: Dict[str, int] = {
    "lymphatic_deep_drainage": 12,
    "standard_drainage": 9,
    "quick_sculpt": 6,
}

ROUTINE_PROTOCOL_TITLES: Dict[str, Dict[str, str]] = {
    "en": {
        "lymphatic_deep_drainage": "Lymphatic Deep Drainage",
        "standard_drainage": "Standard Drainage",
        "quick_sculpt": "Quick Sculpt",
    },
    "es": {
        "lymphatic_deep_drainage": "Drenaje Linfatico Profundo",
        "standard_drainage": "Drenaje Estandar",
        "quick_sculpt": "Esculpido Rapido",
    },
    "fr": {
        "lymphatic_deep_drainage": "Drainage Lymphatique Profond",
        "standard_drainage": "Drainage Standard",
        "quick_sculpt": "Sculpture Rapide",
    },
    "de": {
        "lymphatic_deep_drainage": "Tiefe Lymphdrainage",
        "standard_drainage": "Standarddrainage",
        "quick_sculpt": "Schnelles Sculpting",
    },
    "ja": {
        "lymphatic_deep_drainage": "リンパディープドレナージュ",
        "standard_drainage": "標準ドレナージュ",
        "quick_sculpt": "クイックスカルプト",
    },
    "zh": {
        "lymphatic_deep_drainage": "深层淋巴引流",
        "standard_drainage": "标准引流",
        "quick_sculpt": "快速塑形",
    },
    "it": {
        "lymphatic_deep_drainage": "Drenaggio Linfatico Profondo",
        "standard_drainage": "Drenaggio Standard",
        "quick_sculpt": "Quick Sculpt",
    },
    "nl": {
        "lymphatic_deep_drainage": "Diepe Lymfedrainage",
        "standard_drainage": "Standaard Drainage",
        "quick_sculpt": "Quick Sculpt",
    },
    "pt": {
        "lymphatic_deep_drainage": "Drenagem Linfatica Profunda",
        "standard_drainage": "Drenagem Padrao",
        "quick_sculpt": "Quick Sculpt",
    },
}

ROUTINE_VARIANT_TITLES: Dict[str, Dict[str, str]] = {
    "en": {
        "reset": "Reset",
        "boost": "Boost",
        "sculpt": "Sculpt",
        "release": "Release",
        "balance": "Balance",
        "deep": "Deep",
        "restore": "Restore",
    },
    "es": {
        "reset": "Reinicio",
        "boost": "Impulso",
        "sculpt": "Esculpir",
        "release": "Liberacion",
        "balance": "Balance",
        "deep": "Profundo",
        "restore": "Restaurar",
    },
    "fr": {
        "reset": "Reinitialisation",
        "boost": "Boost",
        "sculpt": "Sculpter",
        "release": "Relacher",
        "balance": "Equilibre",
        "deep": "Profond",
        "restore": "Restaurer",
    },
    "de": {
        "reset": "Reset",
        "boost": "Boost",
        "sculpt": "Formen",
        "release": "Entlasten",
        "balance": "Balance",
        "deep": "Tief",
        "restore": "Wiederherstellen",
    },
    "ja": {
        "reset": "リセット",
        "boost": "ブースト",
        "sculpt": "スカルプト",
        "release": "リリース",
        "balance": "バランス",
        "deep": "ディープ",
        "restore": "リストア",
    },
    "zh": {
        "reset": "重置",
        "boost": "增强",
        "sculpt": "塑形",
        "release": "释放",
        "balance": "平衡",
        "deep": "深层",
        "restore": "修复",
    },
    "it": {
        "reset": "Reset",
        "boost": "Boost",
        "sculpt": "Scolpisci",
        "release": "Rilascio",
        "balance": "Bilanciamento",
        "deep": "Profondo",
        "restore": "Ripristino",
    },
    "nl": {
        "reset": "Reset",
        "boost": "Boost",
        "sculpt": "Sculpt",
        "release": "Release",
        "balance": "Balans",
        "deep": "Diep",
        "restore": "Herstel",
    },
    "pt": {
        "reset": "Reset",
        "boost": "Boost",
        "sculpt": "Esculpir",
        "release": "Liberacao",
        "balance": "Equilibrio",
        "deep": "Profundo",
        "restore": "Restaurar",
    },
}


def weekday_variant(day: date) -> str:
    return WEEKDAY_VARIANTS[day.isoweekday() % 7]


def build_daily_routine(average_score: int, day: date, locale: str, asset_base_url: str) -> DailyRoutine:
    protocol = score_to_protocol(average_score)
    variant = weekday_variant(day)
    table_locale = locale if locale in ROUTINE_PROTOCOL_TITLES else FALLBACK_LOCALE
    protocol_title = ROUTINE_PROTOCOL_TITLES[table_locale][protocol]
    variant_title = ROUTINE_VARIANT_TITLES[table_locale][variant]
    return DailyRoutine(
        date=day.isoformat(),
        locale=locale,
        average_score=average_score,
        protocol=protocol,
        variant=variant,
        title=f"{protocol_title} - {variant_title}",
        duration_minutes=PROTOCOL_DURATIONS[protocol],
        video_url=f"{asset_base_url.rstrip('/')}/{protocol}/{variant}.mp4",
    )
