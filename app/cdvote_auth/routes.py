import datetime
import secrets

import jwt

from werkzeug.security import check_password_hash
from fastapi import HTTPException, Request, APIRouter, Depends, Response

from app.dependencies import get_session
from app.config import SECRET_KEY, SESSION_EXPIRES_IN

from app.logger import logger
from app.cdvote import utils as cdvote_utils
from app.cdvote.model.cruds import crud
from app.cdvote.model.schemas import schemas
from app.cdvote_auth.model import crud as auth_crud
from app.cdvote_auth.model import schemas as auth_schemas
from app.cdvote_auth.redis_store import (
    delete_session_data,
    generate_session_id,
    store_session_data,
)

from fastapi.security import HTTPBasic, HTTPBasicCredentials

auth_router = APIRouter()

security = HTTPBasic()


@auth_router.post("/login", status_code=201)
async def login_user(response: Response, credentials: HTTPBasicCredentials = Depends(security), session=Depends(get_session)):
    """
    Login a admin user

    """

    if not credentials or not credentials.username or not credentials.password:
        raise HTTPException(status_code=401, detail="an error occurred, please try again")

    user = await auth_crud.get_user_by_name(session=session, name=credentials.username)

    if not user or not check_password_hash(user.password, credentials.password):
        raise HTTPException(status_code=401, detail="wrong username or passwords")

    expires_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=SESSION_EXPIRES_IN)
    token = jwt.encode({"public_id": user.public_id, "exp": expires_at}, SECRET_KEY, algorithm="HS256")
    await auth_crud.update_last_login(session=session, user=user, logged_at=cdvote_utils.local_now())
    response.set_cookie("access_token", token, max_age=SESSION_EXPIRES_IN, httponly=True, samesite="strict")
    return {
        "token": token
    }


@auth_router.post("/student/login", response_model=schemas.StudentOut, status_code=200)
async def login_student(request: Request, data: auth_schemas.StudentLoginIn, session=Depends(get_session)):
    """
    Student login with the student id and the national id.
    Only students approved to vote may log in.
    """
    student_id = cdvote_utils.sanitize_input(data.student_id)
    national_id = cdvote_utils.sanitize_input(data.national_id).replace("-", "").replace(" ", "")

    if not cdvote_utils.is_valid_student_id(student_id):
        raise HTTPException(status_code=400, detail="student id must be 4 digits")
    if not cdvote_utils.is_valid_national_id(national_id):
        raise HTTPException(status_code=400, detail="national id must be 13 digits")

    student = await crud.get_student_by_id(session=session, student_id=student_id)
    if not student or not secrets.compare_digest(student.national_id, national_id):
        logger.warning("%s - Invalid Student Login: %s" % (request.client.host, student_id))
        raise HTTPException(status_code=401, detail="student not found or wrong id")

    if not student.voting_approved:
        raise HTTPException(status_code=403, detail="student is not approved to vote")

    old_session_id = request.session.get("session_id", None)
    if old_session_id:
        await delete_session_data(old_session_id)

    session_id = generate_session_id()
    await store_session_data(session_id, {"student_id": student.id})
    request.session["session_id"] = session_id
    await crud.touch_student(session=session, student_id=student.id)

    logger.log("CDVOTE", "%s - Valid Student Login: %s" % (request.client.host, student.id))
    return student


@auth_router.post("/student/logout", status_code=200)
async def logout_student(request: Request):
    """
    Logout a student
    """
    session_id = request.session.pop("session_id", None)
    if session_id:
        await delete_session_data(session_id)
    return {"message": "success"}
