from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.types import Enum

from app.database import Base
from app.cdvote_auth.model.enums import UserRole


class User(Base):

    __tablename__ = "auth_user"

    id = Column(Integer, primary_key=True)

    # Id for token
    public_id = Column(String(200), unique=True)

    username = Column(String(200), nullable=False, unique=True)
    password = Column(String(200))
    name = Column(String(200), nullable=True)

    role = Column(Enum(UserRole), nullable=False, default=UserRole.admin)
    last_login = Column(DateTime, nullable=True)

    def __repr__(self):
        return '<User %r>' % self.id

    def get_id(self):
        return self.id
