"""
Student card boundary detection.

Contour based, no model: each frame is downscaled, thresholded and
edge-detected, and every convex four-sided contour is scored by how
much it looks like a CR80 card (aspect ratio, right angles, size).
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from app.cdvote.ocr import constants
from app.cdvote.ocr.errors import ImageLoadError


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class BoundingRect:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class DetectionResult:
    """
    ``corners`` holds four points ordered TL, TR, BR, BL when
    ``success`` is True and is empty otherwise. ``candidate`` keeps
    the best quadrilateral that was rejected, for display only.
    """

    success: bool
    confidence: int
    corners: tuple[Point, ...]
    bounding_rect: BoundingRect | None
    aspect_ratio: float
    image_size: tuple[int, int]
    candidate: tuple[Point, ...] = ()

    def corners_array(self) -> np.ndarray:
        return np.array([[p.x, p.y] for p in self.corners], dtype=np.float32)


@dataclass
class QuadCandidate:
    corners: np.ndarray
    confidence: int
    aspect_ratio: float

    @property
    def plausible(self):
        return constants.MIN_ASPECT_RATIO <= self.aspect_ratio <= constants.MAX_ASPECT_RATIO


def check_image(image) -> tuple[int, int]:
    """
    (width, height) of a usable image, ImageLoadError otherwise.
    """
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        raise ImageLoadError()
    if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] not in (1, 3, 4)):
        raise ImageLoadError("Unsupported image shape %s" % (image.shape,))
    height, width = image.shape[:2]
    return width, height


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 1:
        return image[:, :, 0]
    code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
    return cv2.cvtColor(image, code)


def order_corners(points: np.ndarray) -> np.ndarray:
    """
    Orders four points TL, TR, BR, BL.
    """
    points = points.reshape(4, 2).astype(np.float32)
    sums = points.sum(axis=1)
    diffs = np.diff(points, axis=1).ravel()
    return np.array([
        points[np.argmin(sums)],
        points[np.argmin(diffs)],
        points[np.argmax(sums)],
        points[np.argmax(diffs)],
    ], dtype=np.float32)


def quad_aspect_ratio(corners: np.ndarray) -> float:
    tl, tr, br, bl = corners
    width = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2
    height = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2
    if min(width, height) == 0:
        return 0.0
    # portrait cards count as well
    return float(max(width, height) / min(width, height))


def corner_angles(corners: np.ndarray) -> list[float]:
    angles = []
    for i in range(4):
        prev_point, point, next_point = corners[i - 1], corners[i], corners[(i + 1) % 4]
        v1, v2 = prev_point - point, next_point - point
        cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2) + 1e-9)
        angles.append(float(np.degrees(np.arccos(np.clip(cos_angle, -1, 1)))))
    return angles


def score_quad(corners: np.ndarray, area_ratio: float) -> tuple[int, float]:
    """
    (confidence 0-100, aspect ratio) of an ordered quadrilateral.
    """
    aspect = quad_aspect_ratio(corners)
    tolerance = constants.CARD_ASPECT_RATIO - constants.MIN_ASPECT_RATIO
    aspect_score = max(0.0, 1 - abs(aspect - constants.CARD_ASPECT_RATIO) / tolerance)

    angle_error = np.mean([abs(angle - 90) for angle in corner_angles(corners)])
    angle_score = max(0.0, 1 - angle_error / 45)

    area_score = min(1.0, area_ratio / constants.FULL_AREA_SCORE_RATIO)

    confidence = 100 * (
        constants.ASPECT_WEIGHT * aspect_score
        + constants.ANGLE_WEIGHT * angle_score
        + constants.AREA_WEIGHT * area_score
    )
    return int(round(confidence)), aspect


def evaluate_contour(contour: np.ndarray, width: int, height: int) -> QuadCandidate | None:
    perimeter = cv2.arcLength(contour, True)
    approx = cv2.approxPolyDP(contour, constants.APPROX_EPSILON_RATIO * perimeter, True)
    if len(approx) != 4 or not cv2.isContourConvex(approx):
        return None

    quad_area = cv2.contourArea(approx)
    area_ratio = quad_area / float(width * height)
    if not constants.MIN_AREA_RATIO <= area_ratio <= constants.MAX_AREA_RATIO:
        return None

    points = approx.reshape(4, 2)
    margin = constants.BORDER_MARGIN_RATIO * max(width, height)
    xs, ys = points[:, 0], points[:, 1]
    if xs.min() <= margin or ys.min() <= margin or xs.max() >= width - 1 - margin or ys.max() >= height - 1 - margin:
        return None

    contour_area = cv2.contourArea(contour)
    solidity = min(contour_area, quad_area) / max(contour_area, quad_area, 1e-9)
    if solidity < constants.MIN_SOLIDITY:
        return None

    corners = order_corners(points)
    confidence, aspect = score_quad(corners, area_ratio)
    return QuadCandidate(corners=corners, confidence=confidence, aspect_ratio=aspect)


def find_candidates(gray: np.ndarray) -> list[QuadCandidate]:
    height, width = gray.shape[:2]
    blurred = cv2.GaussianBlur(gray, (constants.BLUR_KERNEL_SIZE, constants.BLUR_KERNEL_SIZE), 0)

    _, otsu = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    kernel = np.ones((constants.MORPH_KERNEL_SIZE, constants.MORPH_KERNEL_SIZE), np.uint8)
    edges = cv2.Canny(blurred, constants.CANNY_THRESHOLD_LOW, constants.CANNY_THRESHOLD_HIGH)
    edges = cv2.morphologyEx(edges, cv2.MORPH_CLOSE, kernel)

    candidates = []
    for mask in (otsu, cv2.bitwise_not(otsu), edges):
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        for contour in contours:
            candidate = evaluate_contour(contour, width, height)
            if candidate is not None:
                candidates.append(candidate)
    return candidates


def _points(corners: np.ndarray) -> tuple[Point, ...]:
    return tuple(Point(float(x), float(y)) for x, y in corners)


def detect_card(image: np.ndarray, width: int = None, height: int = None) -> DetectionResult:
    """
    Finds the card in a frame. Never raises for a frame without a
    card; raises ImageLoadError for an unusable image.
    """
    image_width, image_height = check_image(image)
    if (width is not None and width != image_width) or (height is not None and height != image_height):
        raise ImageLoadError("Image is %dx%d, expected %sx%s" % (image_width, image_height, width, height))

    scale = min(1.0, constants.DETECTION_HEIGHT / float(image_height))
    gray = to_gray(image)
    if scale < 1.0:
        size = (max(1, int(round(image_width * scale))), max(1, int(round(image_height * scale))))
        gray = cv2.resize(gray, size, interpolation=cv2.INTER_AREA)

    candidates = find_candidates(gray)
    image_size = (image_width, image_height)

    plausible = [c for c in candidates if c.plausible]
    best = max(plausible, key=lambda c: c.confidence, default=None)
    if best is None or best.confidence < constants.SUCCESS_CONFIDENCE:
        rejected = best or max(candidates, key=lambda c: c.confidence, default=None)
        return DetectionResult(
            success=False,
            confidence=rejected.confidence if rejected else 0,
            corners=(),
            bounding_rect=None,
            aspect_ratio=rejected.aspect_ratio if rejected else 0.0,
            image_size=image_size,
            candidate=_points(rejected.corners / scale) if rejected else (),
        )

    corners = best.corners / scale
    x, y, w, h = cv2.boundingRect(np.round(corners).astype(np.int32))
    return DetectionResult(
        success=True,
        confidence=best.confidence,
        corners=_points(corners),
        bounding_rect=BoundingRect(x, y, w, h),
        aspect_ratio=best.aspect_ratio,
        image_size=image_size,
    )


def draw_detection_overlay(canvas: np.ndarray, detection: DetectionResult) -> np.ndarray:
    """
    Draws ``detection`` on ``canvas`` in place and returns it: a
    filled green quadrilateral on success, a grey outline of the
    rejected candidate otherwise.
    """
    canvas_width, _ = check_image(canvas)
    thickness = max(2, int(round(constants.LINE_WIDTH * canvas_width / constants.MAX_PREVIEW_WIDTH)))

    if detection.success:
        polygon = np.round(detection.corners_array()).astype(np.int32)
        overlay = canvas.copy()
        cv2.fillPoly(overlay, [polygon], constants.SUCCESS_COLOR)
        cv2.addWeighted(overlay, constants.SUCCESS_FILL_ALPHA, canvas, 1 - constants.SUCCESS_FILL_ALPHA, 0, dst=canvas)
        cv2.polylines(canvas, [polygon], True, constants.SUCCESS_COLOR, thickness, cv2.LINE_AA)
        for x, y in polygon:
            cv2.circle(canvas, (int(x), int(y)), constants.CORNER_RADIUS, constants.SUCCESS_COLOR, -1, cv2.LINE_AA)
    elif detection.candidate:
        polygon = np.round([[p.x, p.y] for p in detection.candidate]).astype(np.int32)
        cv2.polylines(canvas, [polygon], True, constants.NEUTRAL_COLOR, thickness, cv2.LINE_AA)

    return canvas
