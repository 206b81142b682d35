from app.database import Base, engine
from app.config import USE_ASYNC_ENGINE
from app.cdvote.model import models  # noqa: F401, registers the tables
from app.cdvote_auth.model.enums import UserRole
from app.cdvote_auth.utils import create_user
import asyncio
import sys

async def init_models():
    if USE_ASYNC_ENGINE:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    else:
        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)

    username, password = (sys.argv[1], sys.argv[2]) if len(sys.argv) > 2 else ("admin", "12345")
    await create_user(username, password, role=UserRole.super_admin)

if __name__ == "__main__":
    asyncio.run(init_models())
