import asyncio
import base64
import os
import re
import time
from typing import Callable, Optional

import cv2

from mealcam.adapters.backend.base import BackendAdapter
from mealcam.adapters.camera.base import CameraAdapter, CameraStream
from mealcam.orchestrator.contracts import (
    AnalysisResult, CaptureSession, CaptureState, DishIdentification, ImageFile,
)
from mealcam.orchestrator.errors import (
    ERR_DEVICE_ACCESS, AnalysisInProgress, CaptureError, DeviceAccessError, InvalidInput,
    PipelineStepFailure, RenderingFailure, user_message,
)

MOBILE_UA = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)

CAPTURE_FILENAME = "camera-capture.jpg"

MSG_INVALID_FILE = "Please select a valid image file"
MSG_EMPTY_IMAGE = "Selected image is empty"
MSG_CAMERA_ACCESS = "Unable to access camera. Please check permissions or try file upload."
MSG_CAMERA_NOT_READY = "Camera is not ready yet. Please wait..."
MSG_PREVIEW_NOT_READY = "Camera preview is not ready. Please wait..."
MSG_PLAY_ERROR = "Error starting camera preview"
MSG_CAPTURE_FAILED = "Failed to capture photo"
MSG_ENCODE_FAILED = "Failed to encode captured frame"
MSG_NOT_AUTHENTICATED = "Not authenticated"
MSG_SUCCESS = "Meal added successfully! Updated your daily list."


def is_mobile(user_agent: str | None) -> bool:
    return bool(MOBILE_UA.search(user_agent or ""))


def to_data_url(file: ImageFile) -> str:
    b64 = base64.standard_b64encode(file.data).decode("ascii")
    return f"data:{file.content_type};base64,{b64}"


class CaptureController:
    """
    Owns the single CaptureSession: camera preview, still capture and the
    upload -> identify -> persist pipeline.

    Public operations never raise CaptureError; failures become one error
    notification on the status store and the session falls back to Idle
    (or stays in CameraPreview when a capture attempt is rejected).
    """

    def __init__(
        self,
        camera: CameraAdapter,
        backend: BackendAdapter,
        status_store,
        on_analyzed: Optional[Callable[[AnalysisResult], None]] = None,
        bucket: str | None = None,
        ready_timeout: float | None = None,
        jpeg_quality: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.camera = camera
        self.backend = backend
        self.status = status_store
        self.on_analyzed = on_analyzed
        self.bucket = bucket or os.getenv("SUPABASE_BUCKET", "meal-images")
        self.ready_timeout = (
            ready_timeout if ready_timeout is not None
            else float(os.getenv("VIDEO_READY_TIMEOUT_S", "3.0"))
        )
        self.jpeg_quality = jpeg_quality if jpeg_quality is not None else int(os.getenv("JPEG_QUALITY", "95"))
        self.clock = clock

        self.session = CaptureSession()
        self._inflight: Optional[object] = None        # single-slot analysis token
        self._opening: Optional[object] = None         # single-slot camera acquisition token
        self._camera_gen = 0                           # bumped on every stream release
        self._playing: Optional[asyncio.Event] = None
        self._ready_task: Optional[asyncio.Task] = None
        self._play_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CaptureState:
        return self.session.state

    @property
    def busy(self) -> bool:
        return self._inflight is not None

    # ── camera preview ─────────────────────────────────────────────────────

    async def take_photo(self, user_agent: str | None = None) -> Optional[str]:
        """Returns "picker" on mobile, "camera" once the preview is open, None on failure."""
        if is_mobile(user_agent):
            self.status.log("take_photo: mobile device, handing over to native picker")
            return "picker"
        return "camera" if await self.start_camera() else None

    async def start_camera(self) -> bool:
        if self.busy:
            self._reject(AnalysisInProgress())
            return False
        if self._opening is not None:
            self._reject(AnalysisInProgress("Camera is already starting"))
            return False

        # a new session replaces whatever was open before
        self._release_stream()
        self.session.preview_data = None
        gen = self._camera_gen

        self._opening = object()
        try:
            stream = await self._open_stream()
        except DeviceAccessError as e:
            self._reject(e)
            if self._camera_gen == gen and not self.busy:
                self.session.reset()
            return False
        finally:
            self._opening = None

        # cancelled, torn down or replaced by a file upload while the device was opening
        if self._camera_gen != gen or self.busy:
            stream.stop()
            self.status.log("camera: acquisition superseded, stream stopped")
            if self.busy:
                self._reject(AnalysisInProgress())
            return False

        self.session.live_stream = stream
        self.session.video_ready = False
        self._playing = asyncio.Event()
        self._ready_task = asyncio.create_task(self._await_ready(self._playing))
        self._play_task = asyncio.create_task(self._play(stream))
        self.status.log(f"camera: preview open, waiting up to {self.ready_timeout}s for playback")
        return True

    async def _open_stream(self) -> CameraStream:
        try:
            return await asyncio.to_thread(self.camera.open, "user")
        except Exception as e:
            self.status.log(f"camera: error accessing camera: {type(e).__name__}: {e}")
            raise DeviceAccessError(MSG_CAMERA_ACCESS) from e

    async def _play(self, stream: CameraStream):
        # metadata is known once the device is open: start playback right away
        try:
            started = await asyncio.to_thread(stream.play)
        except Exception as e:
            self.status.log(f"camera: error playing video: {type(e).__name__}: {e}")
            self.status.error(MSG_PLAY_ERROR, code=ERR_DEVICE_ACCESS)
            return
        if started and self.session.live_stream is stream:
            self.on_playing()

    async def _await_ready(self, playing: asyncio.Event):
        waiter = asyncio.ensure_future(playing.wait())
        timer = asyncio.ensure_future(asyncio.sleep(self.ready_timeout))
        try:
            done, _ = await asyncio.wait({waiter, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for t in (waiter, timer):
                if not t.done():
                    t.cancel()
        if waiter in done:
            self.status.log("camera: video ready (playing)")
        else:
            self.status.log(f"camera: no playing event after {self.ready_timeout}s, marking ready")
        self.session.video_ready = True

    def on_playing(self) -> bool:
        """Video sink reports playback started. Ignored when no preview is open."""
        if self.session.live_stream is None or self._playing is None:
            return False
        self._playing.set()
        self.session.video_ready = True
        return True

    async def wait_video_ready(self) -> bool:
        task = self._ready_task
        if task is not None:
            await asyncio.wait({task})
        return self.session.video_ready

    def cancel_camera(self):
        self._release_stream()

    def teardown(self):
        self._release_stream()
        self.status.log("controller: torn down")

    def _release_stream(self):
        self._camera_gen += 1
        for task in (self._ready_task, self._play_task):
            if task is not None and not task.done():
                task.cancel()
        self._ready_task = None
        self._play_task = None
        self._playing = None

        stream = self.session.live_stream
        if stream is not None:
            stream.stop()
            self.status.log(f"camera: stopped {len(stream.tracks)} track(s)")
        self.session.live_stream = None
        self.session.video_ready = False

    # ── still capture ──────────────────────────────────────────────────────

    async def capture(self) -> Optional[AnalysisResult]:
        try:
            file = await self._grab_still()
        except CaptureError as e:
            self._reject(e)
            return None

        # stream must be gone before the static preview appears
        self._release_stream()
        return await self._analyze(file)

    async def _grab_still(self) -> ImageFile:
        stream = self.session.live_stream
        if stream is None or not self.session.video_ready:
            raise InvalidInput(MSG_CAMERA_NOT_READY)
        w, h = stream.dimensions
        if w == 0 or h == 0:
            raise InvalidInput(MSG_PREVIEW_NOT_READY)

        frame = await asyncio.to_thread(stream.read_frame)
        if frame is None:
            raise RenderingFailure(MSG_CAPTURE_FAILED)
        try:
            ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        except cv2.error as e:
            self.status.log(f"capture: encode error: {e}")
            raise RenderingFailure(MSG_ENCODE_FAILED) from e
        if not ok:
            raise RenderingFailure(MSG_ENCODE_FAILED)

        self.status.log(f"capture: {w}x{h} frame encoded ({len(buf)} bytes)")
        return ImageFile(name=CAPTURE_FILENAME, content_type="image/jpeg", data=bytes(buf))

    # ── file upload ────────────────────────────────────────────────────────

    async def submit_file(self, file: ImageFile) -> Optional[AnalysisResult]:
        if self.busy:
            self._reject(AnalysisInProgress())
            return None
        if not (file.content_type or "").startswith("image/"):
            self._reject(InvalidInput(MSG_INVALID_FILE))
            return None
        if not file.data:
            self._reject(InvalidInput(MSG_EMPTY_IMAGE))
            return None

        self._release_stream()
        return await self._analyze(file)

    def clear_preview(self) -> bool:
        if self.session.analyzing:
            self._reject(AnalysisInProgress())
            return False
        self.session.preview_data = None
        return True

    # ── analysis pipeline ──────────────────────────────────────────────────

    async def _analyze(self, file: ImageFile) -> Optional[AnalysisResult]:
        if self.busy:
            self._reject(AnalysisInProgress())
            return None
        if not file.data:
            self._reject(InvalidInput(MSG_EMPTY_IMAGE))
            return None

        self._inflight = object()
        self.session.preview_data = to_data_url(file)
        self.session.analyzing = True
        t0 = time.time()
        try:
            result = await self._run_pipeline(file, self.session.preview_data)
            dt = int((time.time() - t0) * 1000)
            self.status.log(f"analyze: done dish={result.dish_name} dt={dt}ms")
            self.status.success(MSG_SUCCESS)
            self._deliver(result)
            return result
        except CaptureError as e:
            self.status.log(f"analyze: error step={getattr(e, 'step', '-')} {type(e).__name__}: {e}")
            self.status.error(user_message(e), code=e.code)
            return None
        finally:
            self._inflight = None
            self.session.preview_data = None
            self.session.analyzing = False

    async def _run_pipeline(self, file: ImageFile, image_base64: str) -> AnalysisResult:
        # 1) who is uploading
        identity = await self._step("identity", self.backend.get_current_user)
        if identity is None:
            raise PipelineStepFailure("identity", MSG_NOT_AUTHENTICATED)

        # 2) raw bytes -> storage
        key = f"{identity.id}/{int(self.clock() * 1000)}.{file.extension}"
        await self._step("upload", self.backend.upload, self.bucket, key, file.data, file.content_type)

        # 3) public url
        image_url = await self._step("public_url", self.backend.get_public_url, self.bucket, key)
        if not image_url:
            raise PipelineStepFailure("public_url", f"No public URL for {key}")

        # 4) identify dish from the base64 copy
        dish = await self._step("identify", self._identify, image_base64)
        result = AnalysisResult.combine(dish, image_url)

        # 5) persist one row
        row = {"user_id": identity.id, **result.to_dict()}
        await self._step("persist", self.backend.insert_meal, row)
        return result

    def _identify(self, image_base64: str) -> DishIdentification:
        dish = self.backend.identify_dish(image_base64)
        if not isinstance(dish, DishIdentification):
            dish = DishIdentification.from_payload(dish)
        return dish

    async def _step(self, step: str, fn, *args):
        self.status.log(f"pipeline: {step}")
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            self.status.log(f"pipeline: {step} failed {type(e).__name__}: {e}")
            raise PipelineStepFailure(step, user_message(e)) from e

    def _deliver(self, result: AnalysisResult):
        if self.on_analyzed is None:
            return
        try:
            self.on_analyzed(result)
        except Exception as e:
            self.status.log(f"analyze: on_analyzed callback error {type(e).__name__}: {e}")

    def _reject(self, err: CaptureError):
        self.status.log(f"rejected {err.code}: {err}")
        self.status.error(str(err), code=err.code)
