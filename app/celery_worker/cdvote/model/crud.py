from app.cdvote.model import models
from app.cdvote.model.schemas import schemas
from sqlalchemy import select, update
from sqlalchemy.orm import Session


def get_existing_student_ids(session: Session, student_ids: list):
    query = select(models.Student.id).where(models.Student.id.in_(student_ids))
    result = session.execute(query)
    return {row[0] for row in result.all()}

def create_students(session: Session, students: list[schemas.StudentIn]):
    session.add_all([models.Student(**student.model_dump()) for student in students])

def update_student(session: Session, student: schemas.StudentIn):
    query = update(models.Student).where(
        models.Student.id == student.id
    ).values(student.model_dump(exclude={"id"}))
    session.execute(query)
