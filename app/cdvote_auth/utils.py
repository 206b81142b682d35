import logging
import uuid

from app.database import db_handler

from app.cdvote_auth.model import crud as auth_crud
from app.cdvote_auth.model import schemas as auth_schemas
from app.cdvote_auth.model.enums import UserRole

from werkzeug.security import generate_password_hash

PASSWORD_HASH_METHOD = "scrypt:32768:8:1"


@db_handler.func_with_session
async def create_user(session, username: str, password: str, name: str = None, role: UserRole = UserRole.admin):
    """
    Create a new admin user
    :param username: username of the user
    :param password: password of the user
    """
    hashed_password = generate_password_hash(password, method=PASSWORD_HASH_METHOD)
    user = auth_schemas.UserIn(
        username=username,
        password=hashed_password,
        public_id=str(uuid.uuid4()),
        name=name,
        role=role,
    )
    db_user = await auth_crud.create_user(session=session, user=user)
    logging.log(msg="User created successfully!", level=logging.INFO)
    return db_user


@db_handler.func_with_session
async def update_user(session, username: str, password: str):
    """
    Update the password of a user
    :param username: username of the user
    :param password: password of the user
    """
    hashed_password = generate_password_hash(password, method=PASSWORD_HASH_METHOD)
    db_user = await auth_crud.update_user(session=session, username=username, fields={"password": hashed_password})
    logging.log(msg="User updated successfully!", level=logging.INFO)
    return db_user
