from abc import ABC, abstractmethod


class MediaTrack(ABC):
    @property
    @abstractmethod
    def active(self) -> bool:
        ...

    @abstractmethod
    def stop(self):
        """Release the underlying device. Safe to call more than once."""
        ...


class CameraStream(ABC):
    """A live camera feed owned by exactly one capture session."""

    @property
    @abstractmethod
    def tracks(self) -> list[MediaTrack]:
        ...

    @abstractmethod
    def play(self) -> bool:
        """Start playback. Returns True once the first frame has been decoded."""
        ...

    @abstractmethod
    def read_frame(self):
        """Return the current frame as a BGR ndarray, or None if nothing could be read."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> tuple[int, int]:
        """(width, height) of the rendered feed; (0, 0) before metadata is known."""
        ...

    def stop(self):
        for track in self.tracks:
            track.stop()


class CameraAdapter(ABC):
    @abstractmethod
    def open(self, facing_mode: str = "user") -> CameraStream:
        """Acquire a video stream. Raises on permission / device errors."""
        ...

    def is_available(self) -> bool:
        return True
