"""Shared fixtures: in-memory camera and backend doubles, a controller with a frozen clock."""

import os

# keep the module-level app in mealcam.services.api off real devices and Supabase
os.environ.setdefault("CAMERA_ADAPTER", "mock")
os.environ.setdefault("BACKEND_ADAPTER", "mock")

from typing import Any

import pytest

from mealcam.adapters.backend.mock_backend import MockBackend
from mealcam.adapters.camera.mock_camera import MockCamera
from mealcam.orchestrator.contracts import ImageFile
from mealcam.orchestrator.state_machine import CaptureController
from mealcam.services.status_store import StatusStore

FROZEN_NOW = 1700000000.0  # -> key timestamp 1700000000000


class RecordingBackend(MockBackend):
    """MockBackend that records each collaborator call and can fail any of them."""

    def __init__(self, status_store, **kwargs):
        super().__init__(status_store, **kwargs)
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.identify_payload: Any = None
        self.last_upload: dict | None = None
        self.last_image_base64: str | None = None

    def _enter(self, step: str):
        self.calls.append(step)
        if step in self.fail_on:
            raise self.fail_on[step]

    def get_current_user(self):
        self._enter("identity")
        return super().get_current_user()

    def upload(self, bucket, key, data, content_type):
        self._enter("upload")
        self.last_upload = {"bucket": bucket, "key": key, "data": data, "content_type": content_type}
        super().upload(bucket, key, data, content_type)

    def get_public_url(self, bucket, key):
        self._enter("public_url")
        return super().get_public_url(bucket, key)

    def identify_dish(self, image_base64):
        self._enter("identify")
        self.last_image_base64 = image_base64
        if self.identify_payload is not None:
            return self.identify_payload
        return super().identify_dish(image_base64)

    def insert_meal(self, row):
        self._enter("persist")
        super().insert_meal(row)


@pytest.fixture
def status() -> StatusStore:
    return StatusStore()


@pytest.fixture
def backend(status) -> RecordingBackend:
    return RecordingBackend(status, user_id="u1", base_url="https://demo.supabase.co/storage/v1/object/public")


@pytest.fixture
def camera(status) -> MockCamera:
    return MockCamera(status)


@pytest.fixture
def delivered() -> list:
    return []


@pytest.fixture
def make_controller(status, backend, camera, delivered):
    def _make(**kwargs) -> CaptureController:
        opts = dict(
            camera=camera,
            backend=backend,
            status_store=status,
            on_analyzed=delivered.append,
            bucket="meal-images",
            ready_timeout=2.0,
            clock=lambda: FROZEN_NOW,
        )
        opts.update(kwargs)
        return CaptureController(**opts)

    return _make


@pytest.fixture
def controller(make_controller) -> CaptureController:
    return make_controller()


@pytest.fixture
def apple_jpeg() -> ImageFile:
    return ImageFile(name="apple.jpg", content_type="image/jpeg", data=b"\xff\xd8\xff\xe0apple-jpeg-bytes")
