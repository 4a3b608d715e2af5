from pydantic import BaseModel
from typing import Literal, Optional

CaptureStateName = Literal["idle", "camera_preview", "image_preview", "analyzing"]


class AnalysisOut(BaseModel):
    dish_name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    confidence: float
    image_url: str


class NotificationOut(BaseModel):
    level: Literal["success", "error", "info"]
    message: str


class AnalyzeResponse(BaseModel):
    ok: bool
    state: CaptureStateName
    result: Optional[AnalysisOut] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class TakePhotoResponse(BaseModel):
    ok: bool
    mode: Optional[Literal["camera", "picker"]] = None
    state: CaptureStateName
    error: Optional[str] = None


class ActionResponse(BaseModel):
    ok: bool
    state: CaptureStateName


class StatusResponse(BaseModel):
    state: CaptureStateName
    analyzing: bool
    video_ready: bool
    has_preview: bool
    camera_open: bool
    last_error: Optional[str] = None
    last_result: Optional[AnalysisOut] = None
    notifications: list[NotificationOut] = []   # read-and-clear
    logs: list[str]


class HealthResponse(BaseModel):
    api: bool
    camera_adapter: str
    camera_available: bool
    backend_adapter: str
    backend_ready: bool
