from fastapi import Request, HTTPException

from app.cdvote_auth.redis_store import get_session_data


class AuthStudent:
    """
    Resolves the logged-in student id from the session cookie.
    The session itself lives encrypted in Redis and expires there.
    """

    def __init__(self, auto_error: bool = True) -> None:
        self.auto_error = auto_error

    async def __call__(self, request: Request) -> str | None:
        session_id = request.session.get("session_id", None)
        if not session_id:
            return self._unauthorized("unauthorized")

        session_data = await get_session_data(session_id)
        student_id = session_data.get("student_id", None) if session_data else None
        if not student_id:
            request.session.pop("session_id", None)
            return self._unauthorized("session expired")

        return student_id

    def _unauthorized(self, detail: str):
        if self.auto_error:
            raise HTTPException(status_code=401, detail=detail)
        return None
