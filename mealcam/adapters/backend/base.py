class BackendAdapter:
    """The four remote collaborators the capture pipeline talks to.

    Every call is blocking; the controller runs them off the event loop.
    Failures are reported by raising.
    """

    def get_current_user(self):
        """Return Identity for the signed-in user, or None."""
        raise NotImplementedError

    def upload(self, bucket: str, key: str, data: bytes, content_type: str):
        raise NotImplementedError

    def get_public_url(self, bucket: str, key: str) -> str:
        raise NotImplementedError

    def identify_dish(self, image_base64: str):
        """Return DishIdentification for a base64 data URL."""
        raise NotImplementedError

    def insert_meal(self, row: dict):
        raise NotImplementedError
