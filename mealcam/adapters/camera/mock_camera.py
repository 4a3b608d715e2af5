"""Mock camera: serves synthetic frames (or a still from MOCK_CAMERA_IMAGE) for testing."""
import os
import numpy as np
import cv2
from mealcam.adapters.camera.base import CameraAdapter, CameraStream, MediaTrack


class MockTrack(MediaTrack):
    def __init__(self):
        self._active = True
        self.stop_calls = 0

    @property
    def active(self) -> bool:
        return self._active

    def stop(self):
        self.stop_calls += 1
        self._active = False


class MockStream(CameraStream):
    def __init__(self, status_store, frame, plays: bool = True):
        self.status = status_store
        self._frame = frame
        self._plays = plays
        self._track = MockTrack()
        self.frames_read = 0

    @property
    def tracks(self) -> list[MediaTrack]:
        return [self._track]

    def play(self) -> bool:
        return self._plays and self._track.active

    def read_frame(self):
        if not self._track.active or self._frame is None:
            return None
        self.frames_read += 1
        return self._frame.copy()

    @property
    def dimensions(self) -> tuple[int, int]:
        if self._frame is None or not self._track.active:
            return (0, 0)
        h, w = self._frame.shape[:2]
        return (w, h)


def _synthetic_frame(width: int = 640, height: int = 480):
    frame = np.full((height, width, 3), 40, dtype=np.uint8)
    cv2.circle(frame, (width // 2, height // 2), min(width, height) // 4, (40, 40, 200), -1)
    return frame


class MockCamera(CameraAdapter):
    def __init__(self, status_store, fail: bool = False, plays: bool = True, frame=None):
        self.status = status_store
        self.fail = fail
        self.plays = plays
        self._frame = frame
        self.opened: list[MockStream] = []

    def _load_frame(self):
        if self._frame is not None:
            return self._frame
        path = os.getenv("MOCK_CAMERA_IMAGE")
        if path and os.path.isfile(path):
            img = cv2.imread(path, cv2.IMREAD_COLOR)
            if img is not None:
                self.status.log(f"mock_camera: serving {os.path.basename(path)}")
                return img
        return _synthetic_frame()

    def open(self, facing_mode: str = "user") -> CameraStream:
        if self.fail:
            self.status.log("mock_camera: simulated permission denied")
            raise PermissionError("Permission denied")
        stream = MockStream(self.status, self._load_frame(), plays=self.plays)
        self.opened.append(stream)
        self.status.log(f"mock_camera: opened facing={facing_mode}")
        return stream
