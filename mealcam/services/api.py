import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Header, UploadFile
from dotenv import load_dotenv

from mealcam.services.models import (
    AnalysisOut, AnalyzeResponse, TakePhotoResponse, ActionResponse,
    StatusResponse, HealthResponse, NotificationOut,
)
from mealcam.services.status_store import StatusStore
from mealcam.orchestrator.contracts import AnalysisResult, ImageFile
from mealcam.orchestrator.state_machine import CaptureController
from mealcam.adapters.backend.mock_backend import MockBackend
from mealcam.adapters.camera.mock_camera import MockCamera

load_dotenv(dotenv_path="mealcam/.env", override=False)


def build_camera(status: StatusStore):
    # Camera adapter: CAMERA_ADAPTER env var (cv2 | mock, default: cv2)
    name = os.getenv("CAMERA_ADAPTER", "cv2").lower()
    if name == "cv2":
        from mealcam.adapters.camera.cv2_camera import CV2Camera
        camera = CV2Camera(status)
    else:
        camera = MockCamera(status)
    status.log(f"camera adapter: {type(camera).__name__}")
    return camera


def build_backend(status: StatusStore):
    # Backend adapter: BACKEND_ADAPTER env var (supabase | mock, default: supabase)
    name = os.getenv("BACKEND_ADAPTER", "supabase").lower()
    if name == "supabase":
        from mealcam.adapters.backend.supabase_backend import SupabaseBackend
        backend = SupabaseBackend(status)
        if not backend._ready:
            status.log("backend: Supabase not configured, falling back to mock")
            backend = MockBackend(status)
    else:
        backend = MockBackend(status)
    status.log(f"backend adapter: {type(backend).__name__}")
    return backend


def _analysis_out(result: Optional[AnalysisResult]) -> Optional[AnalysisOut]:
    return AnalysisOut(**result.to_dict()) if result else None


def create_app(status: StatusStore, camera, backend) -> FastAPI:
    def remember(result: AnalysisResult):
        status.last_result = result

    ctrl = CaptureController(camera=camera, backend=backend, status_store=status, on_analyzed=remember)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        ctrl.teardown()

    app = FastAPI(title="mealcam", lifespan=lifespan)
    app.state.controller = ctrl
    app.state.status = status

    def analyze_response(result: Optional[AnalysisResult]) -> AnalyzeResponse:
        if result is None:
            return AnalyzeResponse(
                ok=False, state=ctrl.state.value,
                error=status.last_error, error_code=status.last_error_code,
            )
        return AnalyzeResponse(ok=True, state=ctrl.state.value, result=_analysis_out(result))

    @app.post("/upload", response_model=AnalyzeResponse)
    async def upload(file: UploadFile = File(...)):
        """File picker (desktop upload or mobile native camera)."""
        status.clear_error()
        data = await file.read()
        status.log(f"UPLOAD {file.filename} type={file.content_type} size={len(data)}")
        image = ImageFile(name=file.filename or "upload", content_type=file.content_type or "", data=data)
        return analyze_response(await ctrl.submit_file(image))

    @app.post("/take_photo", response_model=TakePhotoResponse)
    async def take_photo(user_agent: Optional[str] = Header(default=None)):
        status.clear_error()
        mode = await ctrl.take_photo(user_agent)
        return TakePhotoResponse(ok=mode is not None, mode=mode, state=ctrl.state.value, error=status.last_error)

    @app.post("/camera/playing", response_model=ActionResponse)
    def camera_playing():
        """Browser-side video sink fired its playing event."""
        return ActionResponse(ok=ctrl.on_playing(), state=ctrl.state.value)

    @app.post("/camera/capture", response_model=AnalyzeResponse)
    async def camera_capture():
        status.clear_error()
        return analyze_response(await ctrl.capture())

    @app.post("/camera/cancel", response_model=ActionResponse)
    def camera_cancel():
        ctrl.cancel_camera()
        return ActionResponse(ok=True, state=ctrl.state.value)

    @app.post("/preview/clear", response_model=ActionResponse)
    def preview_clear():
        return ActionResponse(ok=ctrl.clear_preview(), state=ctrl.state.value)

    @app.get("/status", response_model=StatusResponse)
    def get_status():
        s = ctrl.session
        # Read-and-clear: frontend shows each toast once
        pending = status.drain_notifications()
        return StatusResponse(
            state=ctrl.state.value,
            analyzing=s.analyzing,
            video_ready=s.video_ready,
            has_preview=s.preview_data is not None,
            camera_open=s.live_stream is not None,
            last_error=status.last_error,
            last_result=_analysis_out(status.last_result),
            notifications=[NotificationOut(level=n.level, message=n.message) for n in pending],
            logs=status.logs,
        )

    @app.get("/health", response_model=HealthResponse)
    def health():
        try:
            camera_ok = camera.is_available()
        except Exception as e:
            status.log(f"health: camera check failed: {e}")
            camera_ok = False
        return HealthResponse(
            api=True,
            camera_adapter=type(camera).__name__,
            camera_available=camera_ok,
            backend_adapter=type(backend).__name__,
            backend_ready=getattr(backend, "_ready", True),
        )

    return app


status = StatusStore()
app = create_app(status, build_camera(status), build_backend(status))
