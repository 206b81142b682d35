"""
Tuning values of the card capture pipeline.
"""

from app.config import OCR_LANGUAGE

# CR80 card, 85.6mm x 53.98mm
CARD_ASPECT_RATIO = 1.586
MIN_ASPECT_RATIO = 1.28
MAX_ASPECT_RATIO = 1.92
CARD_OUTPUT_WIDTH = 856
CARD_OUTPUT_HEIGHT = 540

# Detection
DETECTION_HEIGHT = 500
BLUR_KERNEL_SIZE = 5
MORPH_KERNEL_SIZE = 5
CANNY_THRESHOLD_LOW = 30
CANNY_THRESHOLD_HIGH = 120
APPROX_EPSILON_RATIO = 0.02
MIN_AREA_RATIO = 0.05
MAX_AREA_RATIO = 0.95
MIN_SOLIDITY = 0.8
BORDER_MARGIN_RATIO = 0.005
SUCCESS_CONFIDENCE = 50

# Confidence weights, sum to 1
ASPECT_WEIGHT = 0.5
ANGLE_WEIGHT = 0.3
AREA_WEIGHT = 0.2
# Area ratio at which the area score saturates
FULL_AREA_SCORE_RATIO = 0.25

# Enhancement: contrast around a light center, then unsharp mask
CONTRAST = 1.6
BRIGHTNESS = 5
CONTRAST_CENTER = 200
SHARPEN_KERNEL_SIZE = 5
SHARPEN_INTENSITY = 1.5

# OCR preprocessing
ADAPTIVE_THRESHOLD_BLOCK_SIZE = 35
ADAPTIVE_THRESHOLD_C = 10
# Anything brighter than this is forced to white after the adaptive pass
GLOBAL_THRESHOLD = 65
LANGUAGE = OCR_LANGUAGE

# Overlay colors are BGR
SUCCESS_COLOR = (94, 197, 34)
FAILURE_COLOR = (68, 68, 239)
NEUTRAL_COLOR = (160, 160, 160)
SUCCESS_FILL_ALPHA = 0.2
LINE_WIDTH = 8
CORNER_RADIUS = 6
MAX_PREVIEW_WIDTH = 1024

# Capture loop
FRAME_INTERVAL = 0.1
AUTO_CAPTURE_CONFIDENCE = 70
MAX_CAPTURE_ATTEMPTS = 3
