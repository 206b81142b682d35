"""
celery tasks for CD Vote (cdvote module)

lib: celery
broker: redis
"""

import base64
import binascii
import csv

from io import StringIO

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.celery_worker import celery
from app.cdvote.model.schemas import schemas
from app.cdvote.ocr.errors import CaptureError
from app.cdvote.ocr.pipeline import PipelineManager, ProcessingOptions
from app.cdvote.ocr.recognition import TesseractRecognizer
from app.database import SessionLocal
from app.logger import logger
from .model import crud


STUDENT_CSV_COLUMNS = ["id", "national_id", "prefix", "name", "surname", "student_no", "class_room"]
HEADER_CELLS = {"id", "student_id", "รหัส", "รหัสนักเรียน"}


def parse_student_rows(student_file_content: str):
    """
    Yields (line number, StudentIn or error message) for every
    non empty row of the students file.
    """
    buffer = StringIO(student_file_content.lstrip("\ufeff"))
    csv_reader = csv.reader(buffer, delimiter=",")
    for line, row in enumerate(csv_reader, start=1):
        row = [cell.strip() for cell in row]
        if not any(row):
            continue
        if line == 1 and row[0].lower() in HEADER_CELLS:
            continue
        if len(row) < len(STUDENT_CSV_COLUMNS):
            yield line, "row %d: expected %d columns, got %d" % (line, len(STUDENT_CSV_COLUMNS), len(row))
            continue

        fields = dict(zip(STUDENT_CSV_COLUMNS, row))
        if not fields["class_room"]:
            yield line, "row %d: missing class room for %s" % (line, fields["id"] or "unknown")
            continue
        fields["prefix"] = fields["prefix"] or None
        fields["student_no"] = fields["student_no"] or None
        try:
            yield line, schemas.StudentIn(**fields)
        except ValidationError as e:
            reasons = "; ".join(error["msg"] for error in e.errors())
            yield line, "row %d: %s" % (line, reasons)


@celery.task(name="upload_students")
def upload_students(student_file_content: str, overwrite: bool = False):
    """
    Imports the students file (id, national_id, prefix, name, surname,
    student_no, class_room). Existing students are skipped unless
    ``overwrite`` is set.
    """
    imported, skipped, errors = 0, 0, []
    students = {}
    for line, parsed in parse_student_rows(student_file_content):
        if isinstance(parsed, str):
            errors.append(parsed)
            skipped += 1
        elif parsed.id in students:
            errors.append("row %d: duplicated student id %s" % (line, parsed.id))
            skipped += 1
        else:
            students[parsed.id] = parsed

    with SessionLocal() as session:
        try:
            existing = crud.get_existing_student_ids(session=session, student_ids=list(students))
            new_students = [s for s in students.values() if s.id not in existing]
            crud.create_students(session=session, students=new_students)
            imported += len(new_students)

            for student in students.values():
                if student.id not in existing:
                    continue
                if overwrite:
                    crud.update_student(session=session, student=student)
                    imported += 1
                else:
                    skipped += 1
            session.commit()

        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Students upload failed: %s" % e)
            return {"imported": 0, "skipped": skipped + len(students), "errors": [*errors, "database error, nothing was imported"]}

    return {"imported": imported, "skipped": skipped, "errors": errors}


@celery.task(name="scan_card")
def scan_card(image_b64: str, enable_crop: bool = True, enable_enhancement: bool = True, enable_ocr_preprocessing: bool = True):
    """
    Runs a card photo through detection, cropping, enhancement, OCR
    and field parsing.
    """
    try:
        image_bytes = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError):
        return False, "invalid image encoding"

    options = ProcessingOptions(
        enable_crop=enable_crop,
        enable_enhancement=enable_enhancement,
        enable_ocr_preprocessing=enable_ocr_preprocessing,
    )
    try:
        result = PipelineManager(TesseractRecognizer(), options).run(image_bytes)
    except CaptureError as e:
        logger.warning("Card scan failed (%s): %s" % (e.code, e))
        return False, str(e)

    detection = result.processed.detection
    return True, {
        "detected": bool(detection and detection.success),
        "detection_confidence": detection.confidence if detection else 0,
        "text": result.recognition.text,
        "parsed": result.parsed.to_dict(),
        "timings": result.timings,
    }
