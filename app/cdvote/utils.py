"""
Utilities for CD Vote.
"""

import json
import re
import secrets
import unicodedata

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

import pytz

from app.config import TIMEZONE
from app.cdvote.model.enums import ElectionStatusEnum


STUDENT_ID_PATTERN = re.compile(r"^\d{4}$")
NATIONAL_ID_PATTERN = re.compile(r"^\d{13}$")
CLASS_ROOM_PATTERN = re.compile(r"^([1-6])/(\d{1,2})$")


# -- JSON manipulation --


def to_json(d: dict):
    return json.dumps(d, sort_keys=True, ensure_ascii=False, default=str)


def from_json(value):
    if value == "" or value is None:
        return None

    if isinstance(value, str):
        try:
            return json.loads(value)
        except Exception as e:
            raise Exception(
                "cdvote.utils error: in from_json, value is not JSON parseable"
            ) from e

    return value


# -- Datetime --


def tz_now():
    tz = pytz.timezone(TIMEZONE)
    return datetime.now(tz)


def local_now():
    """
    Naive wall-clock time in the configured timezone, the
    representation used by the DateTime columns.
    """
    return tz_now().replace(tzinfo=None)


def calculate_status(start_date: datetime, end_date: datetime, now: datetime = None) -> ElectionStatusEnum:
    """
    Status of an election from its voting window.
    Both ends of the window are inclusive.
    """
    if now is None:
        now = tz_now() if start_date.tzinfo is not None else local_now()

    if now < start_date:
        return ElectionStatusEnum.pending
    if now <= end_date:
        return ElectionStatusEnum.open
    return ElectionStatusEnum.closed


# -- Numbers --


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


# -- Student data --


def sanitize_input(value: str | None) -> str:
    """
    Drops control characters and surrounding whitespace.
    """
    if not value:
        return ""
    cleaned = "".join(ch for ch in value if unicodedata.category(ch)[0] != "C")
    return cleaned.strip()


def is_valid_student_id(student_id: str) -> bool:
    return bool(student_id) and STUDENT_ID_PATTERN.match(student_id) is not None


def is_valid_national_id(national_id: str) -> bool:
    return bool(national_id) and NATIONAL_ID_PATTERN.match(national_id) is not None


def class_level(class_room: str | None) -> int | None:
    """
    Grade level (1-6) of a class room such as "3/1".
    """
    if not class_room:
        return None
    match = CLASS_ROOM_PATTERN.match(class_room.strip())
    return int(match.group(1)) if match else None


def random_suffix(length: int = 8) -> str:
    return secrets.token_hex(length // 2)
