from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

RetentionStatus = Literal["low_retention", "moderate_retention", "high_retention"]
RoutineProtocol = Literal["lymphatic_deep_drainage", "standard_drainage", "quick_sculpt"]
WeekdayVariant = Literal["reset", "boost", "sculpt", "release", "balance", "deep", "restore"]
BloatRisk = Literal["low", "moderate", "high", "extreme"]


class FaceAnalysisRequest(BaseModel):
    image_base64: Optional[str] = None
    timestamp: Optional[str] = None
    locale: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None


class FoodAnalysisRequest(BaseModel):
    image_base64: Optional[str] = None
    timestamp: Optional[str] = None
    locale: Optional[Any] = None


class ActionableStep(BaseModel):
    id: str
    text: str
    completed: bool = False


class FaceAnalysisResult(BaseModel):
    locale: str
    score: int = Field(..., ge=0, le=100)
    status: RetentionStatus
    focus_areas: List[str] = Field(default_factory=list, max_length=8)
    analysis_summary: str
    suggested_protocol: RoutineProtocol
    actionable_steps: List[ActionableStep] = Field(default_factory=list)


class FoodAnalysisResult(BaseModel):
    locale: str
    food_name: str
    sodium_mg: int = Field(..., ge=0)
    bloat_risk: BloatRisk
    counter_measure: str


class DailyRoutine(BaseModel):
    date: str
    locale: str
    average_score: int = Field(..., ge=0, le=100)
    protocol: RoutineProtocol
    variant: WeekdayVariant
    title: str
    duration_minutes: int
    video_url: str


class HealthResponse(BaseModel):
    ok: bool
    auth_mode: str
    default_locale: str
    supported_locales: List[str]
    uptime_seconds: int


class ErrorResponse(BaseModel):
    error: str
