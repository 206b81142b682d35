from pydantic import BaseModel

from app.cdvote_auth.model.enums import UserRole


class UserBase(BaseModel):
    """
    Basic user schema.
    """

    username: str
    public_id: str
    role: UserRole = UserRole.admin
    name: str | None = None


class UserIn(UserBase):
    """
    Schema for creating a user.
    """
    password: str


class UserOut(UserBase):
    """
    Schema for reading/returning User data.
    """
    id: int

    class Config:
        from_attributes = True


class StudentLoginIn(BaseModel):
    """
    Student login: the 4-digit student id plus the
    13-digit national id as the shared secret.
    """
    student_id: str
    national_id: str
