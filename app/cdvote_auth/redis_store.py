import json
from functools import lru_cache
from uuid import uuid4

import redis.asyncio as redis
from cryptography.fernet import Fernet

from app.config import ENCRYPTION_KEY, REDIS_HOST, REDIS_PORT, SESSION_EXPIRES_IN


@lru_cache(maxsize=None)
def get_redis_client():
    return redis.Redis(host=REDIS_HOST, port=REDIS_PORT, db=0)


@lru_cache(maxsize=None)
def get_cipher_suite():
    if not ENCRYPTION_KEY:
        raise RuntimeError("ENCRYPTION_KEY is not configured")
    return Fernet(ENCRYPTION_KEY)


def generate_session_id():
    """Unique session id."""
    return str(uuid4())


async def store_session_data(session_id: str, data: dict, expires_in: int = SESSION_EXPIRES_IN):
    """Stores encrypted session data in Redis."""
    serialized_data = json.dumps(data)
    encrypted_data = get_cipher_suite().encrypt(serialized_data.encode())
    await get_redis_client().setex(f"session:{session_id}", expires_in, encrypted_data)


async def get_session_data(session_id: str):
    """Reads and decrypts session data from Redis, None once expired."""
    encrypted_data = await get_redis_client().get(f"session:{session_id}")
    if encrypted_data:
        decrypted_data = get_cipher_suite().decrypt(encrypted_data).decode()
        return json.loads(decrypted_data)
    return None


async def delete_session_data(session_id: str):
    await get_redis_client().delete(f"session:{session_id}")
