"""
Cross-checks a parsed card against the student directory.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.cdvote.model.cruds import crud
from app.cdvote.model.enums import MatchTypeEnum
from app.cdvote.ocr.parser import ParseResult


class StudentDirectory(Protocol):
    async def get_by_id(self, student_id: str):
        ...


class DatabaseStudentDirectory(object):
    """
    StudentDirectory over the students table.
    """

    def __init__(self, session: Session | AsyncSession):
        self.session = session

    async def get_by_id(self, student_id: str):
        return await crud.get_student_by_id(session=self.session, student_id=student_id)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    match_type: MatchTypeEnum
    matched_student: object = None


def _comparable(value: str | None) -> str:
    return re.sub(r"\s+", "", value or "").casefold()


async def validate_parsed_data(parsed: ParseResult, directory: StudentDirectory) -> ValidationResult:
    """
    exact: the id exists and name and surname agree with the record.
    partial: the id exists but a name is missing or differs.
    none: no id was read, or no student has it.
    """
    if not parsed.id:
        return ValidationResult(is_valid=False, match_type=MatchTypeEnum.none)

    student = await directory.get_by_id(parsed.id)
    if student is None:
        return ValidationResult(is_valid=False, match_type=MatchTypeEnum.none)

    names_match = (
        parsed.name is not None
        and parsed.surname is not None
        and _comparable(parsed.name) == _comparable(student.name)
        and _comparable(parsed.surname) == _comparable(student.surname)
    )
    if names_match:
        return ValidationResult(is_valid=True, match_type=MatchTypeEnum.exact, matched_student=student)
    return ValidationResult(is_valid=False, match_type=MatchTypeEnum.partial, matched_student=student)
