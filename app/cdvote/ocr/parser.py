"""
Turns the raw text of a student card into structured fields.

Recognized text is noisy: labels come out misspelled, digits come out
as look-alike letters and values are sometimes glued to their labels.
Labels are matched fuzzily and every field carries its own confidence
(0-100); a field that was not found is None with confidence 0.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher

FIELDS = ("id", "name", "surname", "classroom", "no", "national_id")

LABEL_SIMILARITY = 0.8

# Longer labels first: prefix splitting relies on this order
LABELS = {
    "national_id": ["เลขประจำตัวประชาชน", "เลขบัตรประชาชน", "บัตรประชาชน", "nationalid", "citizenid"],
    "fullname": ["ชื่อ-นามสกุล", "ชื่อนามสกุล", "ชื่อ-สกุล", "ชื่อสกุล", "fullname"],
    "id": ["รหัสนักเรียน", "รหัสประจำตัว", "เลขประจำตัว", "studentid", "รหัส", "id"],
    "surname": ["นามสกุล", "lastname", "surname", "สกุล"],
    "name": ["firstname", "ชื่อ", "name"],
    "classroom": ["ชั้นเรียน", "classroom", "class", "room", "ชั้น", "ห้อง"],
    "no": ["เลขที่", "no"],
    "year": ["ปีการศึกษา", "พ.ศ.", "year", "ปี"],
}

HONORIFICS = [
    "เด็กหญิง", "เด็กชาย", "นางสาว", "ด.ญ.", "ด.ช.", "น.ส.", "นาง", "นาย",
    "master", "miss", "mrs.", "mrs", "mr.", "mr", "ms.", "ms",
]

# Base confidence per extraction rule, scaled by the anchor similarity
ANCHORED = 90
ANCHORED_NATIONAL_ID = 95
NATIONAL_ID_BAD_CHECKSUM = 80
BARE_NATIONAL_ID = 85
BARE_NATIONAL_ID_BAD_CHECKSUM = 60
BARE_STUDENT_ID = 40
BARE_CLASSROOM = 60
NAME_WITHOUT_SURNAME_LABEL = 75
FULLNAME = 85
HONORIFIC_NAME = 70
HONORIFIC_SURNAME = 65
LINE_NAME = 35
LINE_SURNAME = 30

THAI_DIGITS = str.maketrans("๐๑๒๓๔๕๖๗๘๙", "0123456789")
ZERO_WIDTH = dict.fromkeys(map(ord, "\u200b\u200c\u200d\u2060\ufeff"))
OCR_DIGIT_FIXES = str.maketrans({"O": "0", "o": "0", "D": "0", "Q": "0", "I": "1", "l": "1", "|": "1", "S": "5", "s": "5", "B": "8", "Z": "2", "z": "2"})

MULTIWORD_LABELS = re.compile(r"\b(student|national|citizen|first|last|sur|full|class)\s+(id|name|room)\b", re.IGNORECASE)
CLASSROOM_PATTERN = re.compile(r"(?<![\d/])([1-6])\s*/\s*(\d{1,2})(?![\d/])")
DIGITS_PATTERN = re.compile(r"^[\d-]+$")
STUDENT_ID_PATTERN = re.compile(r"^\d{4,5}$")
NO_PATTERN = re.compile(r"^\d{1,2}$")
LETTERS_PATTERN = re.compile(r"^[ก-๎A-Za-z]+(?:['.-][ก-๎A-Za-z]+)*$")
THAI_PATTERN = re.compile(r"[ก-๎]")
# A glued Thai value starts with a consonant or a leading vowel, never a mark
THAI_WORD_START = re.compile(r"^[ก-ฮเ-ไ]")
# Buddhist Era years printed on cards
BE_YEARS = range(2400, 2700)


@dataclass
class ParseResult:
    id: str | None = None
    name: str | None = None
    surname: str | None = None
    classroom: str | None = None
    no: int | None = None
    national_id: str | None = None
    confidence: dict = field(default_factory=lambda: dict.fromkeys(FIELDS, 0))

    def found(self, name: str) -> bool:
        return self.confidence[name] > 0

    def offer(self, name: str, value: str | int, base: float, similarity: float = 1.0):
        """
        Keeps ``value`` when it beats the current confidence of the field.
        """
        score = max(1, min(100, round(base * similarity)))
        if value and score > self.confidence[name]:
            setattr(self, name, value)
            self.confidence[name] = score

    def to_dict(self):
        data = {name: getattr(self, name) for name in FIELDS}
        data["confidence"] = dict(self.confidence)
        return data


@dataclass
class Token:
    text: str
    label: str | None = None
    similarity: float = 0.0
    used: bool = False
    source: "Token | None" = None

    @property
    def is_label(self):
        return self.label is not None


# -- Normalisation --


def normalize_text(text: str) -> str:
    text = text.translate(THAI_DIGITS).translate(ZERO_WIDTH)
    text = text.replace("：", ":").replace("\r", "\n")
    text = MULTIWORD_LABELS.sub(lambda m: m.group(1) + m.group(2), text)
    return text


def repair_digits(word: str) -> str:
    """
    Maps look-alike letters back to digits in tokens that are mostly
    digits ("12O4" -> "1204"); other words are left untouched.
    """
    digits = sum(ch.isdigit() for ch in word)
    confusables = sum(ch in "OoDQIl|SsBZz" for ch in word)
    if digits < 2 or confusables == 0 or confusables >= digits:
        return word
    if any(not (ch.isdigit() or ch in "OoDQIl|SsBZz-/.") for ch in word):
        return word
    return word.translate(OCR_DIGIT_FIXES)


def _clean_word(word: str) -> str:
    return word.lower().strip(".:;,")


def match_label(word: str) -> tuple[str, float] | None:
    """
    Best label for ``word`` as (field, similarity), or None. Labels
    shorter than three letters only match exactly.
    """
    if any(ch.isdigit() for ch in word):
        return None
    lowered, cleaned = word.lower(), _clean_word(word)
    if len(cleaned) < 2:
        return None

    best = None
    for name, labels in LABELS.items():
        for label in labels:
            if label in (lowered, cleaned):
                return name, 1.0
            if len(label) < 3 or abs(len(cleaned) - len(label)) > 2:
                continue
            similarity = SequenceMatcher(None, cleaned, label).ratio()
            if similarity >= LABEL_SIMILARITY and (best is None or similarity > best[1]):
                best = (name, similarity)
    return best


GLUE_LABELS = sorted(
    ((label, name) for name, labels in LABELS.items() for label in labels),
    key=lambda item: len(item[0]),
    reverse=True,
)


def split_glued_label(word: str) -> tuple[str, str, str] | None:
    """
    "ชื่อสมชาย" -> ("name", "ชื่อ", "สมชาย"), "ID1234" -> ("id", "ID", "1234").
    """
    lowered = word.lower()
    for label, name in GLUE_LABELS:
        if not lowered.startswith(label) or len(lowered) == len(label):
            continue
        remainder = word[len(label):]
        if remainder[0].isdigit():
            return name, word[:len(label)], remainder
        if len(label) >= 3 and THAI_PATTERN.match(label) and THAI_WORD_START.match(remainder):
            return name, word[:len(label)], remainder
    return None


def tokenize(text: str) -> list[list[Token]]:
    lines = []
    for raw_line in normalize_text(text).split("\n"):
        tokens = []
        for word in raw_line.replace(":", " ").split():
            if word == "|":
                continue
            tokens.extend(_classify(word))
        if tokens:
            lines.append(tokens)
    return lines


def _classify(word: str) -> list[Token]:
    matched = match_label(word)
    if matched is not None and matched[1] == 1.0:
        return [Token(word, label=matched[0], similarity=1.0)]

    glued = split_glued_label(word)
    if glued is not None:
        name, label, remainder = glued
        return [Token(label, label=name, similarity=1.0), *_classify(remainder)]

    if matched is not None:
        return [Token(word, label=matched[0], similarity=matched[1])]
    return [Token(repair_digits(word))]


# -- Field helpers --


def is_word(text: str) -> bool:
    return len(text) >= 2 and LETTERS_PATTERN.match(text) is not None


def strip_honorific(text: str) -> tuple[bool, str]:
    lowered = text.lower()
    for honorific in HONORIFICS:
        if lowered == honorific:
            return True, ""
        if lowered.startswith(honorific) and THAI_PATTERN.match(honorific) and len(text) - len(honorific) >= 2:
            return True, text[len(honorific):]
    return False, text


def name_words(tokens: list[Token]) -> list[Token]:
    """
    Letter-only value tokens with honorifics removed; each keeps
    a reference to the token it came from.
    """
    words = []
    for token in tokens:
        if token.is_label or token.used:
            continue
        _, text = strip_honorific(token.text)
        if text and is_word(text):
            words.append(Token(text, source=token))
    return words


def is_valid_thai_national_id(digits: str) -> bool:
    if len(digits) != 13 or not digits.isdigit():
        return False
    total = sum(int(digits[i]) * (13 - i) for i in range(12))
    return (11 - total % 11) % 10 == int(digits[12])


def _digit_run(tokens: list[Token], start: int) -> tuple[str, list[Token]]:
    """
    Digits of the consecutive digit/dash tokens starting at ``start``.
    """
    digits, run = "", []
    for token in tokens[start:]:
        if token.is_label or not DIGITS_PATTERN.match(token.text):
            break
        digits += token.text.replace("-", "")
        run.append(token)
        if len(digits) >= 13:
            break
    return digits, run


# -- Parser --


class FieldParser(object):
    """
    Single-use parser over the tokens of one text.
    """

    def __init__(self, text: str):
        self.lines = tokenize(text)
        self.result = ParseResult()
        self.labelled = {t.label for line in self.lines for t in line if t.is_label}

    def values_after(self, line_index: int, token_index: int) -> list[Token]:
        """
        Tokens following a label up to the next label. A label that
        ends its line takes its value from the next line.
        """
        line = self.lines[line_index]
        values = []
        for token in line[token_index + 1:]:
            if token.is_label:
                return values
            values.append(token)
        if not values and line_index + 1 < len(self.lines):
            for token in self.lines[line_index + 1]:
                if token.is_label:
                    break
                values.append(token)
        return values

    def parse(self) -> ParseResult:
        self.parse_anchored()
        self.parse_bare_national_id()
        self.parse_bare_classroom()
        self.parse_bare_student_id()
        self.parse_honorific_names()
        self.parse_name_lines()
        return self.result

    def parse_anchored(self):
        for line_index, line in enumerate(self.lines):
            for token_index, token in enumerate(line):
                if not token.is_label:
                    continue
                handler = getattr(self, "anchor_%s" % token.label)
                handler(self.values_after(line_index, token_index), token.similarity)

    def anchor_national_id(self, values, similarity):
        digits, run = _digit_run(values, 0)
        if len(digits) != 13:
            return
        base = ANCHORED_NATIONAL_ID if is_valid_thai_national_id(digits) else NATIONAL_ID_BAD_CHECKSUM
        self._use(run)
        self.result.offer("national_id", digits, base, similarity)

    def anchor_id(self, values, similarity):
        for token in values:
            if not token.used and STUDENT_ID_PATTERN.match(token.text):
                token.used = True
                self.result.offer("id", token.text, ANCHORED, similarity)
                return

    def anchor_classroom(self, values, similarity):
        match = CLASSROOM_PATTERN.search(" ".join(t.text for t in values))
        if match:
            self._use(values)
            self.result.offer("classroom", "%s/%s" % (match.group(1), int(match.group(2))), ANCHORED, similarity)

    def anchor_no(self, values, similarity):
        for token in values[:1]:
            if NO_PATTERN.match(token.text) and int(token.text) > 0:
                token.used = True
                self.result.offer("no", int(token.text), ANCHORED, similarity)

    def anchor_name(self, values, similarity):
        words = name_words(values)
        if not words:
            return
        self.result.offer("name", words[0].text, ANCHORED, similarity)
        if len(words) > 1 and "surname" not in self.labelled:
            self.result.offer("surname", words[1].text, NAME_WITHOUT_SURNAME_LABEL, similarity)
        self._use([w.source for w in words[:2]])

    def anchor_surname(self, values, similarity):
        words = name_words(values)
        if words:
            self.result.offer("surname", words[0].text, ANCHORED, similarity)
            self._use([words[0].source])

    def anchor_fullname(self, values, similarity):
        words = name_words(values)
        if words:
            self.result.offer("name", words[0].text, FULLNAME, similarity)
        if len(words) > 1:
            self.result.offer("surname", words[1].text, FULLNAME, similarity)
        self._use([w.source for w in words[:2]])

    def anchor_year(self, values, similarity):
        # a year is never a student id
        self._use(values[:1])

    def parse_bare_national_id(self):
        if self.result.found("national_id"):
            return
        for line in self.lines:
            for index in range(len(line)):
                if line[index].used:
                    continue
                digits, run = _digit_run(line, index)
                if len(digits) == 13 and not any(t.used for t in run):
                    valid = is_valid_thai_national_id(digits)
                    self._use(run)
                    self.result.offer("national_id", digits, BARE_NATIONAL_ID if valid else BARE_NATIONAL_ID_BAD_CHECKSUM)
                    return

    def parse_bare_classroom(self):
        if self.result.found("classroom"):
            return
        for line in self.lines:
            candidates = [t for t in line if not t.used and not t.is_label]
            match = CLASSROOM_PATTERN.search(" ".join(t.text for t in candidates))
            if match:
                for token in candidates:
                    if "/" in token.text:
                        token.used = True
                        break
                self.result.offer("classroom", "%s/%s" % (match.group(1), int(match.group(2))), BARE_CLASSROOM)
                return

    def parse_bare_student_id(self):
        if self.result.found("id"):
            return
        for line in self.lines:
            for token in line:
                if token.used or token.is_label or not STUDENT_ID_PATTERN.match(token.text):
                    continue
                if len(token.text) == 4 and int(token.text) in BE_YEARS:
                    continue
                token.used = True
                self.result.offer("id", token.text, BARE_STUDENT_ID)
                return

    def parse_honorific_names(self):
        if self.result.found("name"):
            return
        for line in self.lines:
            for index, token in enumerate(line):
                if token.used or token.is_label:
                    continue
                is_honorific, rest = strip_honorific(token.text)
                if not is_honorific:
                    continue
                following = ([Token(rest)] if rest else []) + line[index + 1:]
                words = name_words(following)
                if not words:
                    continue
                self.result.offer("name", words[0].text, HONORIFIC_NAME)
                if len(words) > 1:
                    self.result.offer("surname", words[1].text, HONORIFIC_SURNAME)
                return

    def parse_name_lines(self):
        if self.result.found("name"):
            return
        for line in self.lines:
            if len(line) != 2 or any(t.is_label or t.used for t in line):
                continue
            if all(is_word(t.text) and THAI_PATTERN.search(t.text) for t in line):
                self.result.offer("name", line[0].text, LINE_NAME)
                self.result.offer("surname", line[1].text, LINE_SURNAME)
                return

    @staticmethod
    def _use(tokens):
        for token in tokens:
            token.used = True


def parse_ocr_text(text: str) -> ParseResult:
    """
    Parses recognized card text. Deterministic and total: any string,
    including an empty or garbage one, gives a ParseResult.
    """
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    return FieldParser(text).parse()
