"""Tests for the student card text parser."""

import pytest

from app.cdvote.ocr.parser import (
    FIELDS,
    is_valid_thai_national_id,
    match_label,
    parse_ocr_text,
    repair_digits,
    split_glued_label,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    """Tests for the token level helpers."""

    def test_national_id_checksum(self):
        assert is_valid_thai_national_id("1101700203450") is True
        assert is_valid_thai_national_id("1101700203451") is False
        assert is_valid_thai_national_id("110170020345") is False

    def test_repair_digits(self):
        """Look-alike letters are only repaired inside numbers."""
        assert repair_digits("12O4") == "1204"
        assert repair_digits("1S34") == "1534"
        assert repair_digits("Somchai") == "Somchai"
        assert repair_digits("OO") == "OO"

    def test_exact_labels(self):
        assert match_label("รหัส") == ("id", 1.0)
        assert match_label("ชื่อ") == ("name", 1.0)
        assert match_label("นามสกุล") == ("surname", 1.0)
        assert match_label("Class:") == ("classroom", 1.0)

    def test_fuzzy_label(self):
        """A misspelled label still matches, with less than full similarity."""
        name, similarity = match_label("Surnane")

        assert name == "surname"
        assert 0.8 <= similarity < 1.0

    def test_values_are_not_labels(self):
        assert match_label("1234") is None
        assert match_label("x") is None

    def test_split_glued_label(self):
        assert split_glued_label("ชื่อสมชาย") == ("name", "ชื่อ", "สมชาย")
        assert split_glued_label("ID1234") == ("id", "ID", "1234")
        assert split_glued_label("สมชาย") is None


# ---------------------------------------------------------------------------
# parse_ocr_text
# ---------------------------------------------------------------------------


class TestParseOcrText:
    """Tests for parse_ocr_text."""

    def test_clean_thai_card(self):
        """Every labelled field is read with anchored confidence."""
        result = parse_ocr_text("รหัส 1234 ชื่อ สมชาย นามสกุล ใจดี ห้อง 3/1")

        assert result.id == "1234"
        assert result.name == "สมชาย"
        assert result.surname == "ใจดี"
        assert result.classroom == "3/1"
        assert result.no is None
        assert result.national_id is None
        assert result.confidence["id"] == 90
        assert result.confidence["name"] == 90
        assert result.confidence["no"] == 0

    def test_english_card(self):
        """Multi-word labels are joined and a name without surname label is split."""
        text = "Student ID: 12345\nName: John Smith\nClass: 5/2 No. 17"
        result = parse_ocr_text(text)

        assert result.id == "12345"
        assert result.name == "John"
        assert result.surname == "Smith"
        assert result.classroom == "5/2"
        assert result.no == 17
        assert result.confidence["surname"] < result.confidence["name"]

    def test_glued_labels(self):
        result = parse_ocr_text("ชื่อสมชาย นามสกุลใจดี")

        assert result.name == "สมชาย"
        assert result.surname == "ใจดี"

    def test_thai_digits(self):
        result = parse_ocr_text("รหัส ๑๒๓๔")

        assert result.id == "1234"

    def test_classroom_is_normalized(self):
        result = parse_ocr_text("ชั้น 4 / 03")

        assert result.classroom == "4/3"

    @pytest.mark.parametrize("text, confidence", [
        ("เลขประจำตัวประชาชน 1 1017 00203 45 0", 95),
        ("เลขประจำตัวประชาชน 1-1017-00203-45-1", 80),
    ])
    def test_anchored_national_id(self, text, confidence):
        """A bad checksum lowers the confidence without dropping the value."""
        result = parse_ocr_text(text)

        assert result.national_id is not None
        assert len(result.national_id) == 13
        assert result.confidence["national_id"] == confidence

    def test_bare_national_id(self):
        result = parse_ocr_text("1101700203450")

        assert result.national_id == "1101700203450"
        assert result.confidence["national_id"] == 85
        assert result.id is None

    def test_unlabelled_card(self):
        """Honorific names and a bare id, skipping the Buddhist Era year."""
        result = parse_ocr_text("นาย สมชาย ใจดี\n2567 1234")

        assert result.name == "สมชาย"
        assert result.surname == "ใจดี"
        assert result.id == "1234"
        assert result.confidence["id"] == 40
        assert result.confidence["name"] == 70

    def test_year_is_not_an_id(self):
        result = parse_ocr_text("ปีการศึกษา 2567")

        assert result.id is None

    @pytest.mark.parametrize("text", ["", "   \n\n", "@@## ~~ !!", None])
    def test_nothing_found(self, text):
        """Empty or garbage input gives an empty result, never an error."""
        result = parse_ocr_text(text)

        for name in FIELDS:
            assert getattr(result, name) is None
            assert result.confidence[name] == 0

    def test_deterministic(self):
        text = "รหัส 1234 ชื่อ สมชาย นามสกุล ใจดี ห้อง 3/1"

        assert parse_ocr_text(text).to_dict() == parse_ocr_text(text).to_dict()

    def test_to_dict(self):
        data = parse_ocr_text("รหัส 1234").to_dict()

        assert set(data) == {*FIELDS, "confidence"}
        assert data["id"] == "1234"
        assert data["confidence"]["id"] == 90
