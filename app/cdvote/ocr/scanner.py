"""
Live card capture loop.

A CardScanner polls a FrameSource, runs detection on every frame and,
once a card is held steady (or a capture is requested), crops the
frame and sends it to the recognizer. State moves

    IDLE -> DETECTING -> CROPPING -> OCR -> COMPLETE

and any state can go to CLOSED. Detection never runs while a capture
is in OCR.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Callable, Protocol

import cv2
import numpy as np

from app.logger import logger
from app.cdvote.ocr import constants
from app.cdvote.ocr.detector import DetectionResult, detect_card
from app.cdvote.ocr.errors import CameraError, RecognitionError
from app.cdvote.ocr.parser import ParseResult, parse_ocr_text
from app.cdvote.ocr.pipeline import ProcessedImage, ProcessingOptions, process_image
from app.cdvote.ocr.recognition import RecognitionResult, TextRecognizer


class ScannerState(str, enum.Enum):
    idle = "IDLE"
    detecting = "DETECTING"
    cropping = "CROPPING"
    ocr = "OCR"
    complete = "COMPLETE"
    closed = "CLOSED"


class FrameSource(Protocol):
    def read(self) -> np.ndarray | None:
        ...

    def release(self) -> None:
        ...


class CameraFrameSource(object):
    def __init__(self, device=0):
        self.capture = cv2.VideoCapture(device)
        if not self.capture.isOpened():
            self.capture.release()
            raise CameraError("Could not open camera %s" % device)

    def read(self):
        ok, frame = self.capture.read()
        return frame if ok else None

    def release(self):
        self.capture.release()


@dataclass
class ScanOutcome:
    processed: ProcessedImage
    recognition: RecognitionResult
    parsed: ParseResult


class CardScanner(object):
    def __init__(
        self,
        source: FrameSource,
        recognizer: TextRecognizer,
        options: ProcessingOptions = None,
        auto_capture: bool = True,
        frame_interval: float = constants.FRAME_INTERVAL,
        max_attempts: int = constants.MAX_CAPTURE_ATTEMPTS,
        on_frame: Callable[[np.ndarray, DetectionResult], None] = None,
    ):
        self.source = source
        self.recognizer = recognizer
        self.options = options or ProcessingOptions()
        self.auto_capture = auto_capture
        self.frame_interval = frame_interval
        self.max_attempts = max_attempts
        self.on_frame = on_frame

        self.state = ScannerState.idle
        self.attempts = 0
        self.last_detection: DetectionResult | None = None
        self.processed: ProcessedImage | None = None
        self.progress = 0
        self._capture_requested = False
        self._released = False
        self._task: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self.state == ScannerState.closed

    def request_capture(self):
        """
        Captures the next frame whatever its detection result.
        """
        self._capture_requested = True

    def start(self) -> asyncio.Task:
        if self._released:
            raise RuntimeError("Scanner frame source is released")
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.scan())
        return self._task

    async def close(self):
        """
        Stops the loop, abandons an OCR call in flight and releases the
        frame source. Safe to call more than once.
        """
        self.state = ScannerState.closed
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._release()

    def _release(self):
        if not self._released:
            self._released = True
            self.source.release()

    def _should_capture(self, detection: DetectionResult) -> bool:
        if self._capture_requested:
            return True
        return self.auto_capture and detection.success and detection.confidence >= constants.AUTO_CAPTURE_CONFIDENCE

    def _on_progress(self, value: int):
        self.progress = value

    async def scan(self) -> ScanOutcome | None:
        """
        Runs until a capture yields a parsed card, the attempts run out
        or the scanner is closed. Returns None in the last two cases.
        """
        try:
            while not self.closed and self.attempts < self.max_attempts:
                self.state = ScannerState.detecting
                frame = self.source.read()
                if frame is None:
                    raise CameraError()

                detection = detect_card(frame)
                self.last_detection = detection
                if self.on_frame is not None:
                    self.on_frame(frame, detection)

                if self._should_capture(detection):
                    self._capture_requested = False
                    outcome = await self._capture(frame)
                    if outcome is not None:
                        return outcome
                    if self.closed:
                        return None

                await asyncio.sleep(self.frame_interval)

            if not self.closed:
                logger.info("Card scan gave up after %d attempts" % self.attempts)
                self.state = ScannerState.idle
            return None
        finally:
            self._release()

    async def _capture(self, frame: np.ndarray) -> ScanOutcome | None:
        self.attempts += 1
        # a new attempt never sees the previous one's image
        self.processed = None
        self.progress = 0

        self.state = ScannerState.cropping
        processed = process_image(frame, self.options)
        self.processed = processed

        self.state = ScannerState.ocr
        loop = asyncio.get_running_loop()
        try:
            recognition = await loop.run_in_executor(
                None, self.recognizer.recognize, processed.thresholded_card, constants.LANGUAGE, self._on_progress
            )
        except RecognitionError as e:
            logger.warning("Card scan attempt %d failed: %s" % (self.attempts, e))
            self.processed = None
            return None

        if self.closed:
            return None

        parsed = parse_ocr_text(recognition.text)
        if not parsed.found("id"):
            logger.info("Card scan attempt %d read no student id" % self.attempts)
            self.processed = None
            return None

        self.state = ScannerState.complete
        return ScanOutcome(processed=processed, recognition=recognition, parsed=parsed)
