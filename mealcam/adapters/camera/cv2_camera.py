"""
OpenCV webcam adapter.
CAMERA_INDEX env var (default 0) selects the webcam device. OpenCV cannot ask
for a facing mode; the requested mode is only logged.

A VideoCapture is not safe for concurrent read/release, so every access goes
through one lock shared by the stream and its track.
"""
import os
import threading
import cv2
from mealcam.adapters.camera.base import CameraAdapter, CameraStream, MediaTrack


class CV2Track(MediaTrack):
    def __init__(self, cap, lock: threading.Lock):
        self._cap = cap
        self._lock = lock

    @property
    def active(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        # waits for an in-progress read to finish before releasing the device
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None


class CV2Stream(CameraStream):
    def __init__(self, status_store, cap, index: int):
        self.status = status_store
        self._cap = cap
        self._index = index
        self._lock = threading.Lock()
        self._track = CV2Track(cap, self._lock)

    @property
    def tracks(self) -> list[MediaTrack]:
        return [self._track]

    def play(self) -> bool:
        # first successful grab == "playing"
        frame = self.read_frame()
        return frame is not None

    def read_frame(self):
        with self._lock:
            if not self._track.active:
                return None
            ret, frame = self._cap.read()
        if not ret or frame is None:
            self.status.log(f"cv2_camera: frame read failed on device {self._index}")
            return None
        return frame

    @property
    def dimensions(self) -> tuple[int, int]:
        with self._lock:
            if not self._track.active:
                return (0, 0)
            w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        return (w, h)


class CV2Camera(CameraAdapter):
    def __init__(self, status_store, index: int | None = None):
        self.status = status_store
        self._index = index if index is not None else int(os.getenv("CAMERA_INDEX", "0"))

    def open(self, facing_mode: str = "user") -> CameraStream:
        cap = cv2.VideoCapture(self._index)
        if not cap.isOpened():
            cap.release()
            self.status.log(f"cv2_camera: failed to open device {self._index}")
            raise RuntimeError(f"camera device {self._index} could not be opened")
        self.status.log(f"cv2_camera: opened device {self._index} facing={facing_mode}")
        return CV2Stream(self.status, cap, self._index)

    def is_available(self) -> bool:
        cap = cv2.VideoCapture(self._index)
        try:
            return cap.isOpened()
        finally:
            cap.release()
