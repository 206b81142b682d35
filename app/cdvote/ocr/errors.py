"""
Errors of the card capture pipeline.

Only unusable input raises: a frame without a card is a normal
DetectionResult with success False.
"""


class CaptureError(Exception):
    """Card capture failed"""

    code = "capture_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__.strip())


class ImageLoadError(CaptureError):
    """Image is empty or not a 2D/3-channel array"""

    code = "image_load_failed"


class WarpFailedError(CaptureError):
    """Perspective warp could not be computed"""

    code = "warp_failed"


class CameraError(CaptureError):
    """Camera could not be opened or stopped delivering frames"""

    code = "camera_error"


class RecognitionError(CaptureError):
    """Text recognition engine failed"""

    code = "recognition_failed"
