"""Tests for the celery tasks: students import and card scans."""

import asyncio
import base64

import app.celery_worker.cdvote.tasks as tasks

from app.cdvote.model.cruds import crud
from app.database import SessionLocal

HEADER = "id,national_id,prefix,name,surname,student_no,class_room\n"


def get_student(student_id):
    with SessionLocal() as session:
        return asyncio.run(crud.get_student_by_id(session=session, student_id=student_id))


class TestParseStudentRows:
    """Tests for parse_student_rows."""

    def test_header_and_blank_rows_are_skipped(self):
        content = "\ufeff" + HEADER + "\n2001,1101700203460,นาย,ก้อง,ดีมาก,1,1/1\n\n"

        rows = list(tasks.parse_student_rows(content))

        assert len(rows) == 1
        line, student = rows[0]
        assert line == 3
        assert student.id == "2001"
        assert student.class_room == "1/1"

    def test_optional_columns(self):
        rows = list(tasks.parse_student_rows("2002,1-1017-00203-46-1,,แก้ว,ใจงาม,,1/2"))
        _, student = rows[0]

        assert student.prefix is None
        assert student.student_no is None
        assert student.national_id == "1101700203461"

    def test_errors_name_the_row(self):
        content = HEADER + "2003,123,,x,y,,1/1\n2004,1101700203462,,a,b,3\n2005,1101700203464,,c,d,,\n"

        errors = [parsed for _, parsed in tasks.parse_student_rows(content)]

        assert all(isinstance(error, str) for error in errors)
        assert errors[0].startswith("row 2:")
        assert "expected 7 columns" in errors[1]
        assert "missing class room" in errors[2]


class TestUploadStudents:
    """Tests for the upload_students task."""

    def test_import(self):
        content = HEADER + (
            "2001,1101700203460,นาย,ก้อง,ดีมาก,1,1/1\n"
            "2002,1101700203461,,แก้ว,ใจงาม,,1/2\n"
            "2003,123,,x,y,,1/1\n"
            "2001,1101700203463,,dup,dup,,1/1\n"
        )

        report = tasks.upload_students(content)

        assert report["imported"] == 2
        assert report["skipped"] == 2
        assert len(report["errors"]) == 2
        assert get_student("2001").name == "ก้อง"
        assert get_student("2001").voting_approved is False

    def test_existing_students_are_skipped(self, students):
        content = "1001,1101700203450,นาย,สมชาย,ใจเย็น,1,3/1\n"

        report = tasks.upload_students(content)

        assert report == {"imported": 0, "skipped": 1, "errors": []}
        assert get_student("1001").surname == "ใจดี"

    def test_overwrite(self, students):
        content = "1001,1101700203450,นาย,สมชาย,ใจเย็น,1,3/1\n"

        report = tasks.upload_students.delay(student_file_content=content, overwrite=True).get()

        assert report["imported"] == 1
        assert get_student("1001").surname == "ใจเย็น"
        assert get_student("1001").voting_approved is True


class TestScanCard:
    """Tests for the scan_card task failure paths."""

    def test_invalid_base64(self):
        ok, message = tasks.scan_card("***not base64***")

        assert ok is False
        assert message == "invalid image encoding"

    def test_undecodable_image(self):
        ok, message = tasks.scan_card(base64.b64encode(b"definitely not a picture").decode("ascii"))

        assert ok is False
        assert message
