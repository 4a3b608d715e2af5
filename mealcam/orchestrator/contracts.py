from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional

from mealcam.adapters.camera.base import CameraStream


class CaptureState(str, Enum):
    IDLE = "idle"
    CAMERA_PREVIEW = "camera_preview"
    IMAGE_PREVIEW = "image_preview"
    ANALYZING = "analyzing"


@dataclass
class ImageFile:
    name: str                  # e.g. "camera-capture.jpg"
    content_type: str          # declared media type, e.g. "image/jpeg"
    data: bytes

    @property
    def extension(self) -> str:
        # text after the last dot, or the whole name when there is none
        return self.name.rsplit(".", 1)[-1]


@dataclass
class Identity:
    id: str


NUTRITION_FIELDS = ("calories", "protein", "carbs", "fat", "confidence")


@dataclass
class DishIdentification:
    dish_name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    confidence: float

    @classmethod
    def from_payload(cls, payload: Any) -> "DishIdentification":
        """Build from the inference function's JSON body. Raises ValueError on a bad shape."""
        if not isinstance(payload, dict):
            raise ValueError(f"identify response is not an object: {type(payload).__name__}")
        missing = [k for k in ("dish_name",) + NUTRITION_FIELDS if payload.get(k) is None]
        if missing:
            raise ValueError(f"identify response missing fields: {', '.join(missing)}")
        try:
            numbers = {k: float(payload[k]) for k in NUTRITION_FIELDS}
        except (TypeError, ValueError) as e:
            raise ValueError(f"identify response has non-numeric field: {e}") from e
        return cls(dish_name=str(payload["dish_name"]), **numbers)


@dataclass
class AnalysisResult:
    dish_name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    confidence: float
    image_url: str

    @classmethod
    def combine(cls, dish: DishIdentification, image_url: str) -> "AnalysisResult":
        return cls(**asdict(dish), image_url=image_url)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CaptureSession:
    preview_data: Optional[str] = None         # data URL shown on screen
    analyzing: bool = False
    live_stream: Optional[CameraStream] = None
    video_ready: bool = False

    @property
    def state(self) -> CaptureState:
        if self.analyzing:
            return CaptureState.ANALYZING
        if self.preview_data is not None:
            return CaptureState.IMAGE_PREVIEW
        if self.live_stream is not None:
            return CaptureState.CAMERA_PREVIEW
        return CaptureState.IDLE

    def reset(self):
        self.preview_data = None
        self.analyzing = False
        self.live_stream = None
        self.video_ready = False
