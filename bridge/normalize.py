from __future__ import annotations

import hashlib
import math
from typing import Dict, List, Mapping, Optional

from bridge.schemas import ActionableStep, FaceAnalysisResult, FoodAnalysisResult

MAX_LIST_ITEMS = 8
MAX_ACTION_STEPS = 5
MAX_TEXT_LENGTH = 600
HIGH_SCORE_THRESHOLD = 70
MODERATE_SCORE_THRESHOLD = 40
QUICK_SCULPT_THRESHOLD = 30

DEFAULT_SUMMARY = "Facial fluid retention pattern analyzed."
DEFAULT_FOOD_NAME = "Unknown meal"
DEFAULT_COUNTER_MEASURE = "Drink 500-750ml water and avoid extra sodium for 6 hours."
BLOAT_RISK_LEVELS = ("low", "moderate", "high", "extreme")

FALLBACK_ACTION_TEXTS: Dict[str, List[str]] = {
    "en": [
        "Drink 500ml of water in the next 30 minutes.",
        "Do a 5-minute gentle lymphatic sweep around eyes and jawline.",
        "Keep sodium low for your next meal.",
    ],
    "es": [
        "Bebe 500ml de agua en los próximos 30 minutos.",
        "Haz un drenaje linfático suave de 5 minutos en ojos y mandíbula.",
        "Mantén bajo el sodio en tu próxima comida.",
    ],
    "fr": [
        "Bois 500ml d'eau dans les 30 prochaines minutes.",
        "Fais 5 minutes de drainage lymphatique doux autour des yeux et de la mâchoire.",
        "Limite le sodium pour ton prochain repas.",
    ],
    "de": [
        "Trinke in den nächsten 30 Minuten 500ml Wasser.",
        "Mache 5 Minuten sanfte Lymphmassage um Augen und Kiefer.",
        "Halte Natrium bei der nächsten Mahlzeit niedrig.",
    ],
    "ja": [
        "30分以内に500mlの水を飲んでください。",
        "目元とあご周りを5分間やさしくリンパケアしてください。",
        "次の食事は塩分を控えてください。",
    ],
    "zh": [
        "请在30分钟内喝500ml水。",
        "对眼周和下颌进行5分钟轻柔淋巴按摩。",
        "下一餐尽量控制盐分摄入。",
    ],
    "it": [
        "Bevi 500ml di acqua nei prossimi 30 minuti.",
        "Esegui 5 minuti di drenaggio linfatico delicato su occhi e mandibola.",
        "Mantieni basso il sodio nel prossimo pasto.",
    ],
    "nl": [
        "Drink 500ml water in de komende 30 minuten.",
        "Doe 5 minuten zachte lymfedrainage rond ogen en kaaklijn.",
        "Houd natrium laag bij je volgende maaltijd.",
    ],
    "pt": [
        "Beba 500ml de agua nos proximos 30 minutos.",
        "Faca 5 minutos de drenagem linfatica suave na regiao dos olhos e mandibula.",
        "Mantenha baixo o sodio na proxima refeicao.",
    ],
}

DEEP_ROUTINE_ACTION: Dict[str, str] = {
    "en": "Use your deep drainage routine today.",
    "es": "Haz tu rutina de drenaje profundo hoy.",
    "fr": "Fais ta routine de drainage profond aujourd'hui.",
    "de": "Nutze heute deine tiefe Drainage-Routine.",
    "ja": "今日はディープドレナージュルーティンを行ってください。",
    "zh": "今天请执行深层引流方案。",
    "it": "Fai oggi la tua routine di drenaggio profondo.",
    "nl": "Gebruik vandaag je diepe drainageroutine.",
    "pt": "Use hoje sua rotina de drenagem profunda.",
}

QUICK_SCULPT_ACTION: Dict[str, str] = {
    "en": "Use your quick sculpt routine today.",
    "es": "Haz tu rutina rápida de sculpt hoy.",
    "fr": "Fais ta routine quick sculpt aujourd'hui.",
    "de": "Nutze heute deine Quick-Sculpt-Routine.",
    "ja": "今日はクイックスカルプトルーティンを行ってください。",
    "zh": "今天请执行快速塑形方案。",
    "it": "Fai oggi la tua routine quick sculpt.",
    "nl": "Gebruik vandaag je quick sculpt-routine.",
    "pt": "Use hoje sua rotina quick sculpt.",
}


def _as_number(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_int(value: object, min_value: int, max_value: Optional[int] = None, default: int = 0) -> int:
    number = _as_number(value)
    rounded = default if number is None else round_half_up(number)
    rounded = max(min_value, rounded)
    if max_value is not None:
        rounded = min(max_value, rounded)
    return rounded


def clean_text(value: object, default: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return default
    text = str(value).strip()[:max_length].strip()
    return text or default


def sanitize_string_array(value: object, limit: int = MAX_LIST_ITEMS) -> List[str]:
    if not isinstance(value, list):
        return []
    items: List[str] = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            continue
        text = str(item).strip()
        if text and text not in items:
            items.append(text)
        if len(items) >= limit:
            break
    return items


def sanitize_risk_level(value: object) -> str:
    normalized = value.strip().lower() if isinstance(value, str) else ""
    return normalized if normalized in BLOAT_RISK_LEVELS else "low"


def score_to_status(score: int) -> str:
    if score >= HIGH_SCORE_THRESHOLD:
        return "high_retention"
    if score >= MODERATE_SCORE_THRESHOLD:
        return "moderate_retention"
    return "low_retention"


def score_to_protocol(score: int) -> str:
    if score >= HIGH_SCORE_THRESHOLD:
        return "lymphatic_deep_drainage"
    if score >= MODERATE_SCORE_THRESHOLD:
        return "standard_drainage"
    return "quick_sculpt"


def fallback_action_texts(score: int, locale: str) -> List[str]:
    base = list(FALLBACK_ACTION_TEXTS.get(locale, FALLBACK_ACTION_TEXTS["en"]))
    if score >= HIGH_SCORE_THRESHOLD:
        base.insert(0, DEEP_ROUTINE_ACTION.get(locale, DEEP_ROUTINE_ACTION["en"]))
    elif score < QUICK_SCULPT_THRESHOLD:
        base.insert(0, QUICK_SCULPT_ACTION.get(locale, QUICK_SCULPT_ACTION["en"]))
    return base[:MAX_ACTION_STEPS]


def _step_texts(value: object) -> List[str]:
    if not isinstance(value, list):
        return []
    # Already-normalized steps arrive as {"id", "text", "completed"} objects.
    flattened = [item.get("text") if isinstance(item, dict) else item for item in value]
    return sanitize_string_array([clean_text(item, "") for item in flattened], limit=MAX_ACTION_STEPS)


def step_id(text: str, index: int) -> str:
    digest = hashlib.sha1(f"{text}-{index}".encode("utf-8")).hexdigest()[:10]
    return f"scan-step-{digest}"


def build_action_items(raw_steps: object, score: int, locale: str) -> List[ActionableStep]:
    texts = _step_texts(raw_steps)
    if not texts:
        texts = fallback_action_texts(score, locale)
    return [
        ActionableStep(id=step_id(text, index), text=text, completed=False)
        for index, text in enumerate(texts)
    ]


def normalize_face_result(payload: Mapping[str, object], locale: str) -> FaceAnalysisResult:
    if not isinstance(payload, Mapping):
        payload = {}
    score = clamp_int(payload.get("score"), 0, 100)
    summary = payload.get("summary")
    if summary is None:
        summary = payload.get("analysis_summary")
    return FaceAnalysisResult(
        locale=locale,
        score=score,
        status=score_to_status(score),
        focus_areas=sanitize_string_array(payload.get("focus_areas")),
        analysis_summary=clean_text(summary, DEFAULT_SUMMARY),
        suggested_protocol=score_to_protocol(score),
        actionable_steps=build_action_items(payload.get("actionable_steps"), score, locale),
    )


def normalize_food_result(payload: Mapping[str, object], locale: str) -> FoodAnalysisResult:
    if not isinstance(payload, Mapping):
        payload = {}
    return FoodAnalysisResult(
        locale=locale,
        food_name=clean_text(payload.get("food_name"), DEFAULT_FOOD_NAME),
        sodium_mg=clamp_int(payload.get("sodium_mg"), 0),
        bloat_risk=sanitize_risk_level(payload.get("bloat_risk")),
        counter_measure=clean_text(payload.get("counter_measure"), DEFAULT_COUNTER_MEASURE),
    )
