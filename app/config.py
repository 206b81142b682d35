import os

# Retrieve enviroment variables from .env file

DATABASE_USER = os.environ.get("DATABASE_USER")
DATABASE_PASS = os.environ.get("DATABASE_PASS")
DATABASE_HOST = os.environ.get("DATABASE_HOST")
DATABASE_NAME = os.environ.get("DATABASE_NAME")

# Full SQLAlchemy url, takes precedence over the mysql credentials above
DATABASE_URL = os.environ.get("DATABASE_URL")

SECRET_KEY: str = os.environ.get("SECRET_KEY", "cdvote-dev-secret")

APP_FRONTEND_URL = os.environ.get("APP_FRONTEND_URL", "")

ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY")

REDIS_HOST = os.environ.get("REDIS_HOST", "redis")
REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
SESSION_EXPIRES_IN = int(os.environ.get("SESSION_EXPIRES_IN", 3600))

USE_ASYNC_ENGINE = bool(int(os.environ.get("USE_ASYNC_ENGINE", False)))
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")
CELERY_TASK_ALWAYS_EAGER = bool(int(os.environ.get("CELERY_TASK_ALWAYS_EAGER", False)))
TIMEZONE = os.environ.get("TIMEZONE", "Asia/Bangkok")

OCR_LANGUAGE = os.environ.get("OCR_LANGUAGE", "tha+eng")
TESSERACT_CMD = os.environ.get("TESSERACT_CMD")

LOGGER_CONFIG_PATH = os.environ.get("LOGGER_CONFIG_PATH")

ORIGINS: list = [
    "*"
]
