from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette_context import middleware, plugins

from app.config import SECRET_KEY, ORIGINS, SESSION_EXPIRES_IN


def register_middlewares(app):
    # Student sessions: the cookie only carries the Redis session id
    app.add_middleware(SessionMiddleware, secret_key=SECRET_KEY, max_age=SESSION_EXPIRES_IN, same_site="strict")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        middleware.ContextMiddleware,
        plugins=(
            plugins.ForwardedForPlugin(),
            plugins.RequestIdPlugin(),
        ),
    )
