import os
from mealcam.adapters.backend.base import BackendAdapter
from mealcam.orchestrator.contracts import DishIdentification, Identity

_APPLE = DishIdentification(
    dish_name="apple", calories=95, protein=0.5, carbs=25, fat=0.3, confidence=0.92,
)


class MockBackend(BackendAdapter):
    """In-memory stand-in for storage, inference and the meals table."""

    def __init__(self, status_store, user_id: str | None = None,
                 base_url: str = "https://mock.storage.local/object/public"):
        self.status = status_store
        uid = user_id if user_id is not None else os.getenv("MOCK_USER_ID", "u1")
        self.user = Identity(id=uid) if uid else None
        self.base_url = base_url.rstrip("/")
        self.identification = _APPLE
        self.objects: dict[str, bytes] = {}
        self.meals: list[dict] = []

    def get_current_user(self) -> Identity | None:
        return self.user

    def upload(self, bucket: str, key: str, data: bytes, content_type: str):
        self.objects[f"{bucket}/{key}"] = data
        self.status.log(f"mock_backend: stored {bucket}/{key}")

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/{bucket}/{key}"

    def identify_dish(self, image_base64: str) -> DishIdentification:
        self.status.log(f"mock_backend: identify -> {self.identification.dish_name}")
        return self.identification

    def insert_meal(self, row: dict):
        self.meals.append(dict(row))
        self.status.log(f"mock_backend: meal saved ({len(self.meals)} total)")
