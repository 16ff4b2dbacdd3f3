"""Demo: GitHub sign-in for a FastAPI app with pysocialite.

Demonstrates the documented patterns:

- ``SocialiteManager`` built from ``Config.from_settings()``
- ``create_auth_router`` mounting ``/auth/{driver}/redirect`` and
  ``/auth/{driver}/callback``
- ``on_login`` turning the canonical ``User`` into the app's response
- ``RedisSessionStore`` for multi-worker deployments

Setup
-----
1. Create a GitHub OAuth App at https://github.com/settings/developers
2. Set its callback URL to ``http://127.0.0.1:8000/auth/github/callback``
3. Export the credentials::

       export PYSOCIALITE__DRIVERS__GITHUB__CLIENT_ID="your-client-id"
       export PYSOCIALITE__DRIVERS__GITHUB__CLIENT_SECRET="your-client-secret"

   Optionally share state across workers::

       export DEMO_REDIS_URL="redis://localhost:6379/0"

4. Run::

       python examples/pysocialite_demo_fastapi.py

   and open http://127.0.0.1:8000/.
"""

from __future__ import annotations

import contextlib
import html as html_mod
import os
import sys

from typing import TYPE_CHECKING

import uvicorn

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from pysocialite import Config, HttpOptions, RedisSessionStore, SocialiteManager, get_settings
from pysocialite.log import configure_from_settings
from pysocialite.routes import create_auth_router


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pysocialite import User


# GitHub endpoints for the generic provider
GITHUB_DEFAULTS = {
    "provider": "generic",
    "authorize_url": "https://github.com/login/oauth/authorize",
    "token_url": "https://github.com/login/oauth/access_token",
    "userinfo_url": "https://api.github.com/user",
    "scopes": ["read:user", "user:email"],
    "redirect": "http://127.0.0.1:8000/auth/github/callback",
}


settings = get_settings()
configure_from_settings(settings.log)

config = Config.from_settings(settings)
for key, value in GITHUB_DEFAULTS.items():
    if not config.has(f"github.{key}"):
        config.set(f"github.{key}", value)

if not config.get("github.client_id") or not config.get("github.client_secret"):
    print(
        "\n"
        "  GitHub OAuth credentials are required.\n"
        "\n"
        "    export PYSOCIALITE__DRIVERS__GITHUB__CLIENT_ID=...\n"
        "    export PYSOCIALITE__DRIVERS__GITHUB__CLIENT_SECRET=...\n"
    )
    sys.exit(1)

manager = SocialiteManager(config, http_options=HttpOptions.from_settings(settings.http))

REDIS_URL = os.environ.get("DEMO_REDIS_URL", "")
session_store_factory = (
    (lambda session_id: RedisSessionStore(session_id, redis_url=REDIS_URL)) if REDIS_URL else None
)


def welcome(user: User) -> HTMLResponse:
    """Render a greeting for the signed-in user."""
    name = html_mod.escape(user.name or user.nickname or user.id or "")
    avatar = html_mod.escape(user.avatar or "")
    return HTMLResponse(
        f"<h1>Hello, {name}</h1>"
        f'<img src="{avatar}" width="96" alt="avatar">'
        f"<p>Signed in via GitHub (id {html_mod.escape(user.id or '')}).</p>"
    )


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Close provider HTTP clients on shutdown."""
    yield
    await manager.aclose()


app = FastAPI(title="pysocialite demo", lifespan=lifespan)
app.include_router(
    create_auth_router(manager, session_store_factory=session_store_factory, on_login=welcome)
)


@app.get("/", response_class=HTMLResponse)
async def index() -> str:
    """Landing page with a sign-in link."""
    return '<a href="/auth/github/redirect">Sign in with GitHub</a>'


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
