"""
Text recognition engines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np
import pytesseract

from app.config import TESSERACT_CMD
from app.cdvote.ocr import constants
from app.cdvote.ocr.errors import RecognitionError

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    # mean word confidence 0-100, None when the engine gives none
    confidence: float | None = None


class TextRecognizer(Protocol):
    def recognize(self, image: np.ndarray, language_hint: str = None, progress: ProgressCallback = None) -> RecognitionResult:
        ...


class TesseractRecognizer(object):
    """
    Tesseract through pytesseract. Lines are rebuilt from the word
    table so the parser keeps the card's line structure.
    """

    def __init__(self, language: str = constants.LANGUAGE, tesseract_cmd: str = TESSERACT_CMD, config: str = "--psm 6"):
        self.language = language
        self.config = config
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def recognize(self, image: np.ndarray, language_hint: str = None, progress: ProgressCallback = None) -> RecognitionResult:
        if progress:
            progress(0)
        try:
            data = pytesseract.image_to_data(
                image,
                lang=language_hint or self.language,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError) as e:
            raise RecognitionError(str(e)) from e

        lines = {}
        confidences = []
        for i, word in enumerate(data["text"]):
            word = (word or "").strip()
            if not word:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
            confidence = float(data["conf"][i])
            if confidence >= 0:
                confidences.append(confidence)

        if progress:
            progress(100)

        text = "\n".join(" ".join(words) for words in lines.values())
        confidence = round(sum(confidences) / len(confidences), 1) if confidences else None
        return RecognitionResult(text=text, confidence=confidence)
