from fastapi import FastAPI

from .cdvote.routes import api_router
from .cdvote_auth.routes import auth_router

from app.logger import logger
from app.middleware import register_middlewares

app = FastAPI(title="CD Vote")

app.logger = logger

register_middlewares(app)

# Routes
app.include_router(api_router)
app.include_router(auth_router)
