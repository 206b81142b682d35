"""Tests for card detection and the still image pipeline."""

import cv2
import numpy as np
import pytest

from app.cdvote.ocr import constants
from app.cdvote.ocr.detector import detect_card, draw_detection_overlay, order_corners, quad_aspect_ratio
from app.cdvote.ocr.errors import ImageLoadError
from app.cdvote.ocr.pipeline import PipelineManager, ProcessingOptions, load_image, process_image
from app.cdvote.ocr.recognition import RecognitionResult


def card_frame(width=640, height=480, card_width=480, card_height=302, background=40):
    """Dark frame with a light card centered on it."""
    frame = np.full((height, width, 3), background, dtype=np.uint8)
    x = (width - card_width) // 2
    y = (height - card_height) // 2
    cv2.rectangle(frame, (x, y), (x + card_width - 1, y + card_height - 1), (235, 235, 235), -1)
    cv2.putText(frame, "1234", (x + 40, y + 120), cv2.FONT_HERSHEY_SIMPLEX, 2, (20, 20, 20), 4)
    return frame


class FakeRecognizer:
    def __init__(self, text):
        self.text = text
        self.images = []

    def recognize(self, image, language_hint=None, progress=None):
        self.images.append(image)
        if progress:
            progress(100)
        return RecognitionResult(text=self.text, confidence=90.0)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetectCard:
    """Tests for detect_card."""

    def test_detects_card(self):
        """A clean landscape card is found with high confidence."""
        detection = detect_card(card_frame())

        assert detection.success is True
        assert detection.confidence >= constants.AUTO_CAPTURE_CONFIDENCE
        assert len(detection.corners) == 4
        assert detection.image_size == (640, 480)
        assert abs(detection.aspect_ratio - constants.CARD_ASPECT_RATIO) < 0.1

    def test_corners_are_ordered(self):
        detection = detect_card(card_frame())
        tl, tr, br, bl = detection.corners

        assert tl.x < tr.x and bl.x < br.x
        assert tl.y < bl.y and tr.y < br.y

    def test_corners_in_original_coordinates(self):
        """Detection runs downscaled but reports full resolution corners."""
        detection = detect_card(card_frame(width=1280, height=960, card_width=960, card_height=604))

        assert detection.success is True
        xs = [p.x for p in detection.corners]
        assert min(xs) == pytest.approx(160, abs=8)
        assert max(xs) == pytest.approx(1119, abs=8)

    def test_blank_frame(self):
        detection = detect_card(np.full((480, 640, 3), 128, dtype=np.uint8))

        assert detection.success is False
        assert detection.corners == ()
        assert detection.bounding_rect is None

    def test_noise_frame(self):
        rng = np.random.default_rng(7)
        noise = rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8)

        assert detect_card(noise).success is False

    def test_square_is_rejected(self):
        """A quadrilateral far from the card ratio is not a card."""
        frame = card_frame(card_width=300, card_height=300)

        assert detect_card(frame).success is False

    def test_grayscale_frame(self):
        gray = cv2.cvtColor(card_frame(), cv2.COLOR_BGR2GRAY)

        assert detect_card(gray).success is True

    @pytest.mark.parametrize("image", [None, np.zeros((0, 0, 3), dtype=np.uint8), "not an image"])
    def test_unusable_image(self, image):
        with pytest.raises(ImageLoadError):
            detect_card(image)

    def test_dimension_mismatch(self):
        with pytest.raises(ImageLoadError):
            detect_card(card_frame(), width=800, height=600)


class TestGeometry:
    """Tests for corner ordering and aspect ratio."""

    def test_order_corners(self):
        points = np.array([[100, 80], [10, 10], [10, 80], [100, 10]], dtype=np.float32)
        ordered = order_corners(points)

        assert ordered.tolist() == [[10, 10], [100, 10], [100, 80], [10, 80]]

    def test_aspect_ratio_either_orientation(self):
        landscape = np.array([[0, 0], [158.6, 0], [158.6, 100], [0, 100]], dtype=np.float32)
        portrait = np.array([[0, 0], [100, 0], [100, 158.6], [0, 158.6]], dtype=np.float32)

        assert quad_aspect_ratio(landscape) == pytest.approx(1.586, abs=1e-3)
        assert quad_aspect_ratio(portrait) == pytest.approx(1.586, abs=1e-3)


class TestOverlay:
    """Tests for draw_detection_overlay."""

    def test_success_overlay_draws_on_canvas(self):
        frame = card_frame()
        detection = detect_card(frame)
        canvas = frame.copy()

        result = draw_detection_overlay(canvas, detection)

        assert result is canvas
        assert not np.array_equal(canvas, frame)
        assert detection.success is True

    def test_failed_overlay_without_candidate(self):
        frame = np.full((480, 640, 3), 128, dtype=np.uint8)
        detection = detect_card(frame)
        canvas = frame.copy()

        draw_detection_overlay(canvas, detection)

        assert np.array_equal(canvas, frame)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestProcessImage:
    """Tests for process_image."""

    def test_crops_card(self):
        """The card is warped to the canonical landscape size."""
        processed = process_image(card_frame())

        assert processed.cropped is True
        assert (processed.height, processed.width) == (constants.CARD_OUTPUT_HEIGHT, constants.CARD_OUTPUT_WIDTH)
        assert processed.thresholded_card.ndim == 2
        assert set(np.unique(processed.thresholded_card)) <= {0, 255}

    def test_portrait_card_is_turned(self):
        frame = card_frame(width=640, height=640, card_width=302, card_height=480)
        processed = process_image(frame)

        assert processed.cropped is True
        assert (processed.height, processed.width) == (constants.CARD_OUTPUT_HEIGHT, constants.CARD_OUTPUT_WIDTH)

    def test_source_is_not_modified(self):
        frame = card_frame()
        original = frame.copy()

        processed = process_image(frame)

        assert np.array_equal(frame, original)
        assert not np.array_equal(processed.original_with_overlay, original)

    def test_no_card_passes_through(self):
        """A frame without a card is processed whole."""
        frame = np.full((480, 640, 3), 128, dtype=np.uint8)
        processed = process_image(frame, ProcessingOptions(enable_enhancement=False))

        assert processed.cropped is False
        assert processed.detection.success is False
        assert processed.cropped_card.shape == frame.shape

    def test_everything_disabled(self):
        frame = card_frame()
        processed = process_image(frame, ProcessingOptions(False, False, False))

        assert processed.detection is None
        assert np.array_equal(processed.cropped_card, frame)
        assert np.array_equal(processed.thresholded_card, frame)
        assert set(processed.timings) == {"load"}

    def test_options_are_independent(self):
        """Thresholding without cropping or enhancement works on the frame."""
        frame = card_frame()
        processed = process_image(frame, ProcessingOptions(enable_crop=False, enable_enhancement=False))

        assert processed.cropped is False
        assert processed.thresholded_card.shape == frame.shape[:2]
        assert "threshold" in processed.timings
        assert "enhance" not in processed.timings

    def test_enhancement_changes_card(self):
        frame = card_frame()
        plain = process_image(frame, ProcessingOptions(enable_enhancement=False, enable_ocr_preprocessing=False))
        enhanced = process_image(frame, ProcessingOptions(enable_ocr_preprocessing=False))

        assert not np.array_equal(plain.cropped_card, enhanced.cropped_card)

    def test_encoded_bytes(self):
        ok, encoded = cv2.imencode(".png", card_frame())
        assert ok

        processed = process_image(encoded.tobytes())

        assert processed.cropped is True

    @pytest.mark.parametrize("source", [b"", b"not an image", 42])
    def test_unusable_source(self, source):
        with pytest.raises(ImageLoadError):
            load_image(source)


class TestPipelineManager:
    """Tests for PipelineManager."""

    def test_run(self):
        recognizer = FakeRecognizer("รหัส 1234 ชื่อ สมชาย นามสกุล ใจดี ห้อง 3/1")
        progress = []

        result = PipelineManager(recognizer).run(card_frame(), progress=progress.append)

        assert result.parsed.id == "1234"
        assert result.recognition.confidence == 90.0
        assert progress == [100]
        assert recognizer.images[0] is result.processed.thresholded_card
        assert {"load", "detect", "crop", "ocr", "parse"} <= set(result.timings)
        assert result.total_ms == pytest.approx(sum(result.timings.values()), abs=0.01)
        assert "total=" in result.summary()
