from __future__ import annotations

import json
import logging
import time
from datetime import date, datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from bridge.config import Settings
from bridge.errors import BridgeError, InputError
from bridge.images import ImagePreprocessor, TempStoreReclaimer
from bridge.locales import SUPPORTED_LOCALES, LocaleResolver
from bridge.model_client import GeminiClient
from bridge.normalize import clamp_int, normalize_face_result, normalize_food_result
from bridge.parsing import extract_json_object
from bridge.routines import build_daily_routine
from bridge.schemas import (
    DailyRoutine,
    FaceAnalysisRequest,
    FaceAnalysisResult,
    FoodAnalysisRequest,
    FoodAnalysisResult,
    HealthResponse,
)
from bridge.security import BearerAuthGuard, ResponsePacer

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOGGER = logging.getLogger("bridge")

AUTH_MODE = "bridge_token"
DEFAULT_AVERAGE_SCORE = 50
PACED_PATH_PREFIX = "/v1"
SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

FACE_SYSTEM_INSTRUCTION = "\n".join(
    [
        "You are a professional medical aesthetician specializing in edema and lymphatic health.",
        "Analyze the provided facial image for early signs of fluid retention and facial fullness.",
        "Pay attention to key indicators such as:",
        "- Periorbital puffiness (smoothness vs. sharp eye creases).",
        "- Jawline definition (shadow contrast on the mandible).",
        "- Asymmetry indicating sleep-side fluid pooling.",
        "- General facial edema or mid-face tissue swelling.",
        "Return only a JSON object with keys: 'score' (0-100), 'focus_areas' (array), "
        "'summary' (1 sentence), 'actionable_steps' (array of 3-5 short practical actions).",
    ]
)

FOOD_SYSTEM_INSTRUCTION = "\n".join(
    [
        "You are a nutrition assistant focused on sodium-related fluid retention.",
        "Analyze the provided food image and estimate sodium impact.",
        "Return only JSON with keys: food_name (string), sodium_mg (integer), "
        "bloat_risk ('low'|'moderate'|'high'|'extreme'), counter_measure (string).",
        "Do not include markdown or extra text.",
    ]
)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_face_prompt(payload: FaceAnalysisRequest, language_label: str) -> str:
    metadata = payload.metadata or {}
    return "\n".join(
        [
            "Analyze this morning facial scan for fluid retention cues.",
            f"timestamp: {payload.timestamp or _utc_timestamp()}",
            f"is_morning: {json.dumps(metadata.get('is_morning', True))}",
            f"last_water_intake_ml: {json.dumps(metadata.get('last_water_intake_ml', 0))}",
            f"Write 'summary' in {language_label}.",
            f"Write 'actionable_steps' in {language_label}.",
            "Keep 'focus_areas' canonical short English labels (for stable app mapping).",
            'Output JSON only: {"score":number,"focus_areas":string[],"summary":string,'
            '"actionable_steps":string[]}',
        ]
    )


def build_food_prompt(payload: FoodAnalysisRequest, language_label: str) -> str:
    return "\n".join(
        [
            "Identify the dish and estimate sodium exposure.",
            f"timestamp: {payload.timestamp or _utc_timestamp()}",
            f"Write 'food_name' and 'counter_measure' in {language_label}.",
            "Return 'bloat_risk' strictly in English enum: low|moderate|high|extreme.",
            'Output JSON only: {"food_name":string,"sodium_mg":number,'
            '"bloat_risk":"low|moderate|high|extreme","counter_measure":string}',
        ]
    )


class AnalysisBridge:
    def __init__(
        self,
        settings: Settings,
        model_client: GeminiClient,
        preprocessor: ImagePreprocessor,
        resolver: LocaleResolver,
    ) -> None:
        self.settings = settings
        self.model_client = model_client
        self.preprocessor = preprocessor
        self.resolver = resolver

    async def _query_model(
        self,
        kind: str,
        model: str,
        system_instruction: str,
        user_prompt: str,
        image_base64: Optional[str],
    ) -> Dict[str, object]:
        if not image_base64:
            raise InputError("image_base64 is required")
        prepared = await run_in_threadpool(self.preprocessor.prepare, image_base64, kind)
        try:
            raw_text = await self.model_client.ask(
                model,
                system_instruction,
                user_prompt,
                prepared.data,
                prepared.mime_type,
            )
            return extract_json_object(raw_text)
        except BaseException:
            # Covers cancellation too: nothing outlives a failed request.
            self.preprocessor.discard(prepared.path)
            raise

    async def analyze_face(
        self, payload: FaceAnalysisRequest, accept_language: Optional[str]
    ) -> FaceAnalysisResult:
        locale = self.resolver.resolve(payload.locale, accept_language)
        user_prompt = build_face_prompt(payload, self.resolver.language_label(locale))
        model_payload = await self._query_model(
            "face",
            self.settings.face_model,
            FACE_SYSTEM_INSTRUCTION,
            user_prompt,
            payload.image_base64,
        )
        result = normalize_face_result(model_payload, locale)
        LOGGER.info(
            "analysis kind=face locale=%s score=%s status=%s focus_areas=%s steps=%s",
            locale,
            result.score,
            result.status,
            len(result.focus_areas),
            len(result.actionable_steps),
        )
        return result

    async def analyze_food(
        self, payload: FoodAnalysisRequest, accept_language: Optional[str]
    ) -> FoodAnalysisResult:
        locale = self.resolver.resolve(payload.locale, accept_language)
        user_prompt = build_food_prompt(payload, self.resolver.language_label(locale))
        model_payload = await self._query_model(
            "food",
            self.settings.food_model,
            FOOD_SYSTEM_INSTRUCTION,
            user_prompt,
            payload.image_base64,
        )
        result = normalize_food_result(model_payload, locale)
        LOGGER.info(
            "analysis kind=food locale=%s sodium_mg=%s bloat_risk=%s",
            locale,
            result.sodium_mg,
            result.bloat_risk,
        )
        return result


def _parse_routine_date(value: Optional[str]) -> date:
    if value:
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            LOGGER.info("routine_date_ignored value=%r", value[:32])
    return datetime.now(timezone.utc).date()


def create_app(
    settings: Settings,
    model_client: Optional[GeminiClient] = None,
    pacer: Optional[ResponsePacer] = None,
) -> FastAPI:
    resolver = LocaleResolver(settings.default_locale)
    preprocessor = ImagePreprocessor(settings.tmp_scan_dir, settings.max_image_bytes)
    reclaimer = TempStoreReclaimer(
        settings.tmp_scan_dir,
        interval_seconds=settings.cleanup_interval_seconds,
        retention_seconds=settings.temp_retention_seconds,
    )
    client = model_client or GeminiClient(
        settings.gemini_api_key,
        settings.gemini_base_url,
        timeout=settings.model_timeout_seconds,
    )
    bridge = AnalysisBridge(settings, client, preprocessor, resolver)
    response_pacer = pacer or ResponsePacer(settings.min_response_delay_ms / 1000.0)
    auth_guard = BearerAuthGuard(settings.bridge_api_token)
    started_at = time.monotonic()

    app = FastAPI(title="AI Analysis Bridge", version="0.1.0")
    app.state.bridge = bridge
    app.state.reclaimer = reclaimer
    app.state.pacer = response_pacer

    @app.middleware("http")
    async def _pace_and_harden(request: Request, call_next):
        request_started = response_pacer.start()
        try:
            response = await call_next(request)
        except Exception:
            LOGGER.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
            response = JSONResponse(status_code=500, content={"error": "Internal server error"})
        if request.url.path.startswith(PACED_PATH_PREFIX):
            await response_pacer.pace(request_started)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(BridgeError)
    async def _bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.warning(
                "request_failed path=%s status=%s error=%s cause=%r",
                request.url.path,
                exc.status_code,
                exc.message,
                exc.__cause__,
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body."})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.on_event("startup")
    def _start_temp_sweep() -> None:
        LOGGER.info(
            "AI bridge starting auth_mode=%s default_locale=%s tmp_dir=%s",
            AUTH_MODE,
            resolver.default_locale,
            settings.tmp_scan_dir,
        )
        if settings.cleanup_enabled:
            reclaimer.start()

    @app.on_event("shutdown")
    def _stop_temp_sweep() -> None:
        reclaimer.stop()

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            ok=True,
            auth_mode=AUTH_MODE,
            default_locale=resolver.default_locale,
            supported_locales=list(SUPPORTED_LOCALES),
            uptime_seconds=int(time.monotonic() - started_at),
        )

    router = APIRouter(prefix="/v1", dependencies=[Depends(auth_guard)])

    @router.post("/analyze/face", response_model=FaceAnalysisResult)
    async def analyze_face(payload: FaceAnalysisRequest, request: Request) -> FaceAnalysisResult:
        return await bridge.analyze_face(payload, request.headers.get("Accept-Language"))

    @router.post("/analyze/food", response_model=FoodAnalysisResult)
    async def analyze_food(payload: FoodAnalysisRequest, request: Request) -> FoodAnalysisResult:
        return await bridge.analyze_food(payload, request.headers.get("Accept-Language"))

    @router.get("/routines/daily", response_model=DailyRoutine)
    def daily_routine(
        request: Request,
        locale: Optional[str] = None,
        average_score: Optional[str] = None,
        avg_score: Optional[str] = None,
        routine_date: Optional[str] = Query(None, alias="date"),
    ) -> DailyRoutine:
        resolved_locale = resolver.resolve(locale, request.headers.get("Accept-Language"))
        raw_score = average_score if average_score is not None else avg_score
        score = clamp_int(raw_score, 0, 100, default=DEFAULT_AVERAGE_SCORE)
        return build_daily_routine(
            score,
            _parse_routine_date(routine_date),
            resolved_locale,
            settings.routine_cdn_base_url,
        )

    app.include_router(router)
    return app


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def app_factory() -> FastAPI:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


def run() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
    )


if __name__ == "__main__":
    run()
