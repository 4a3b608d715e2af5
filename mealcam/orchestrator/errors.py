ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
ERR_DEVICE_ACCESS = "ERR_DEVICE_ACCESS"
ERR_RENDERING = "ERR_RENDERING"
ERR_PIPELINE = "ERR_PIPELINE"
ERR_BUSY = "ERR_BUSY"

GENERIC_ANALYSIS_MESSAGE = "Failed to analyze image"


class CaptureError(Exception):
    code = ERR_PIPELINE


class InvalidInput(CaptureError):
    """Non-image file, capture before the camera is ready, or an empty image."""
    code = ERR_INVALID_INPUT


class DeviceAccessError(CaptureError):
    """Camera could not be opened (permission denied, no device, device busy)."""
    code = ERR_DEVICE_ACCESS


class RenderingFailure(CaptureError):
    """Still frame could not be read or encoded; the stream stays open for a retry."""
    code = ERR_RENDERING


class AnalysisInProgress(CaptureError):
    code = ERR_BUSY

    def __init__(self, message: str = "Analysis already in progress"):
        super().__init__(message)


class PipelineStepFailure(CaptureError):
    code = ERR_PIPELINE

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step   # identity | upload | public_url | identify | persist


def user_message(exc: BaseException) -> str:
    """Best available user-facing text for an error."""
    msg = str(exc).strip()
    return msg or GENERIC_ANALYSIS_MESSAGE
