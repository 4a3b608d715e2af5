"""
Supabase backend: auth for identity, Storage for images, an Edge Function
for dish identification and a Postgres table for meals.

Requires SUPABASE_URL and SUPABASE_KEY in mealcam/.env (or system env).
The user is resolved from SUPABASE_ACCESS_TOKEN when set, otherwise from the
session opened with SUPABASE_EMAIL / SUPABASE_PASSWORD.
"""
import json
import os
from supabase import create_client, Client
from mealcam.adapters.backend.base import BackendAdapter
from mealcam.orchestrator.contracts import DishIdentification, Identity

IDENTIFY_FUNCTION = os.getenv("IDENTIFY_FUNCTION", "identify-dish")
MEALS_TABLE = os.getenv("MEALS_TABLE", "meals")


class SupabaseBackend(BackendAdapter):
    def __init__(self, status_store, client: Client | None = None):
        self.status = status_store
        self._client = client
        self._access_token = os.getenv("SUPABASE_ACCESS_TOKEN")
        self._ready = client is not None
        if client is None:
            self._init_client()

    def _init_client(self):
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            self.status.log("supabase: SUPABASE_URL and SUPABASE_KEY must be set")
            return
        self._client = create_client(url, key)
        self._ready = True
        self.status.log(f"supabase: ready ({url})")

        email = os.getenv("SUPABASE_EMAIL")
        password = os.getenv("SUPABASE_PASSWORD")
        if email and password and not self._access_token:
            try:
                self._client.auth.sign_in_with_password({"email": email, "password": password})
                self.status.log(f"supabase: signed in as {email}")
            except Exception as e:
                # not fatal: identity resolution will report "Not authenticated"
                self.status.log(f"supabase: sign-in failed: {e}")

    def get_current_user(self) -> Identity | None:
        if self._access_token:
            resp = self._client.auth.get_user(self._access_token)
        else:
            resp = self._client.auth.get_user()
        if resp is None or resp.user is None:
            return None
        return Identity(id=resp.user.id)

    def upload(self, bucket: str, key: str, data: bytes, content_type: str):
        self.status.log(f"supabase: upload {bucket}/{key} ({len(data)} bytes)")
        self._client.storage.from_(bucket).upload(
            path=key,
            file=data,
            file_options={"content-type": content_type},
        )

    def get_public_url(self, bucket: str, key: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(key)

    def identify_dish(self, image_base64: str) -> DishIdentification:
        self.status.log(f"supabase: invoke {IDENTIFY_FUNCTION}")
        data = self._client.functions.invoke(
            IDENTIFY_FUNCTION,
            invoke_options={"body": {"imageBase64": image_base64}, "responseType": "json"},
        )
        if isinstance(data, (bytes, str)):
            data = json.loads(data)
        return DishIdentification.from_payload(data)

    def insert_meal(self, row: dict):
        self.status.log(f"supabase: insert into {MEALS_TABLE} dish={row.get('dish_name')}")
        self._client.table(MEALS_TABLE).insert(row).execute()
