"""
Card image pipeline: crop, enhance and binarize a frame for OCR.

Every step can be switched off on its own; a frame without a usable card
is passed through unchanged instead of failing.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field

import cv2
import numpy as np

from app.logger import logger
from app.cdvote.ocr import constants
from app.cdvote.ocr.detector import DetectionResult, check_image, detect_card, draw_detection_overlay, to_gray
from app.cdvote.ocr.errors import ImageLoadError, WarpFailedError
from app.cdvote.ocr.parser import ParseResult, parse_ocr_text
from app.cdvote.ocr.recognition import RecognitionResult, TextRecognizer


@dataclass(frozen=True)
class ProcessingOptions:
    enable_crop: bool = True
    enable_enhancement: bool = True
    enable_ocr_preprocessing: bool = True


@dataclass
class ProcessedImage:
    """
    ``cropped_card`` is what a person should see, ``thresholded_card``
    what the recognizer should read. Both equal the source frame when
    every option is off.
    """

    original_with_overlay: np.ndarray
    cropped_card: np.ndarray
    thresholded_card: np.ndarray
    detection: DetectionResult | None = None
    cropped: bool = False
    timings: dict = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.cropped_card.shape[1]

    @property
    def height(self) -> int:
        return self.cropped_card.shape[0]


@contextmanager
def timed(timings: dict, stage: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        timings[stage] = round((time.perf_counter() - start) * 1000, 2)


def load_image(source) -> np.ndarray:
    """
    Accepts a decoded array, encoded image bytes or a file path.
    """
    if isinstance(source, np.ndarray):
        image = source
    elif isinstance(source, (bytes, bytearray, memoryview)):
        buffer = np.frombuffer(source, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    elif isinstance(source, str):
        image = cv2.imread(source, cv2.IMREAD_COLOR)
    else:
        raise ImageLoadError("Unsupported image source %s" % type(source).__name__)

    check_image(image)
    return image


def warp_card(image: np.ndarray, corners: np.ndarray) -> np.ndarray:
    """
    Perspective-warps the quadrilateral ``corners`` (TL, TR, BR, BL) to
    a landscape card of the canonical size. Portrait quadrilaterals are
    warped upright and then turned.
    """
    tl, tr, br, bl = corners
    width = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2
    height = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2
    portrait = height > width

    out_w, out_h = constants.CARD_OUTPUT_WIDTH, constants.CARD_OUTPUT_HEIGHT
    if portrait:
        out_w, out_h = out_h, out_w

    target = np.array([[0, 0], [out_w - 1, 0], [out_w - 1, out_h - 1], [0, out_h - 1]], dtype=np.float32)
    try:
        matrix = cv2.getPerspectiveTransform(corners.astype(np.float32), target)
    except cv2.error as e:
        raise WarpFailedError(str(e)) from e
    if not np.all(np.isfinite(matrix)):
        raise WarpFailedError()

    warped = cv2.warpPerspective(image, matrix, (out_w, out_h), flags=cv2.INTER_CUBIC)
    if portrait:
        warped = cv2.rotate(warped, cv2.ROTATE_90_CLOCKWISE)
    return warped


def enhance_image(image: np.ndarray) -> np.ndarray:
    """
    Stretches contrast around a light center, then sharpens with an
    unsharp mask.
    """
    alpha = constants.CONTRAST
    beta = constants.CONTRAST_CENTER * (1 - alpha) + constants.BRIGHTNESS
    stretched = np.clip(image.astype(np.float32) * alpha + beta, 0, 255).astype(np.uint8)

    size = constants.SHARPEN_KERNEL_SIZE
    blurred = cv2.GaussianBlur(stretched, (size, size), 0)
    intensity = constants.SHARPEN_INTENSITY
    return cv2.addWeighted(stretched, 1 + intensity, blurred, -intensity, 0)


def threshold_for_ocr(image: np.ndarray) -> np.ndarray:
    """
    Binary black-on-white rendition: adaptive threshold for the text,
    with anything clearly light forced to white to drop card artwork.
    """
    gray = to_gray(image)
    binary = cv2.adaptiveThreshold(
        gray,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        constants.ADAPTIVE_THRESHOLD_BLOCK_SIZE,
        constants.ADAPTIVE_THRESHOLD_C,
    )
    binary[gray > constants.GLOBAL_THRESHOLD] = 255
    return binary


def process_image(source, options: ProcessingOptions = None) -> ProcessedImage:
    """
    Raises ImageLoadError only for an unusable source. A missing card
    or a failed warp leaves the frame uncropped.
    """
    options = options or ProcessingOptions()
    timings = {}

    with timed(timings, "load"):
        original = load_image(source)

    card = original
    overlay = original
    detection = None
    cropped = False
    if options.enable_crop:
        with timed(timings, "detect"):
            detection = detect_card(original)
        overlay = draw_detection_overlay(original.copy(), detection)
        if detection.success:
            with timed(timings, "crop"):
                try:
                    card = warp_card(original, detection.corners_array())
                    cropped = True
                except WarpFailedError as e:
                    logger.warning("Card warp failed, using full frame: %s" % e)

    if options.enable_enhancement:
        with timed(timings, "enhance"):
            card = enhance_image(card)

    if options.enable_ocr_preprocessing:
        with timed(timings, "threshold"):
            thresholded = threshold_for_ocr(card)
    else:
        thresholded = card.copy()

    return ProcessedImage(
        original_with_overlay=overlay,
        cropped_card=card,
        thresholded_card=thresholded,
        detection=detection,
        cropped=cropped,
        timings=timings,
    )


@dataclass
class PipelineResult:
    processed: ProcessedImage
    recognition: RecognitionResult
    parsed: ParseResult
    timings: dict

    @property
    def total_ms(self) -> float:
        return round(sum(self.timings.values()), 2)

    def summary(self) -> str:
        stages = " ".join("%s=%.1fms" % (stage, ms) for stage, ms in self.timings.items())
        return "%s total=%.1fms" % (stages, self.total_ms)


class PipelineManager(object):
    """
    Runs a still image through processing, recognition and parsing.
    """

    def __init__(self, recognizer: TextRecognizer, options: ProcessingOptions = None):
        self.recognizer = recognizer
        self.options = options or ProcessingOptions()

    def run(self, source, progress=None) -> PipelineResult:
        processed = process_image(source, self.options)
        timings = dict(processed.timings)

        with timed(timings, "ocr"):
            recognition = self.recognizer.recognize(processed.thresholded_card, constants.LANGUAGE, progress)
        with timed(timings, "parse"):
            parsed = parse_ocr_text(recognition.text)

        result = PipelineResult(processed=processed, recognition=recognition, parsed=parsed, timings=timings)
        logger.debug("Card pipeline: %s" % result.summary())
        return result
