"""Local web server that receives the OAuth redirect."""

from __future__ import annotations

import asyncio
import contextlib
import html
import webbrowser
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from tunein.auth.oauth import SpotifyAuth
from tunein.errors import AuthError
from tunein.logging import get_logger

log = get_logger("auth")

_PAGE = """
<html>
  <body style="font-family: system-ui; padding: 40px; text-align: center;">
    <h1>{title}</h1>
    {body}
    <p>You can close this window.</p>
  </body>
</html>
"""


def _page(title: str, body: str = "") -> HTMLResponse:
    return HTMLResponse(_PAGE.format(title=title, body=body))


def create_app(auth: SpotifyAuth, done: asyncio.Future[None]) -> FastAPI:
    """Build the callback app; ``done`` resolves once the flow finishes."""
    app = FastAPI(title="tune-in auth callback", docs_url=None, redoc_url=None)

    def finish(error: Exception | None = None) -> None:
        if done.done():
            return
        if error is None:
            done.set_result(None)
        else:
            done.set_exception(error)

    @app.get("/callback")
    async def callback(code: str | None = None, error: str | None = None) -> HTMLResponse:
        if error:
            safe_error = html.escape(error)
            finish(AuthError(f"Authentication failed: {error}"))
            return _page("Authentication Failed", f"<p>{safe_error}</p>")

        if not code:
            finish(AuthError("No authorization code received"))
            return _page("No Authorization Code")

        try:
            await auth.exchange_code(code)
        except Exception as e:
            log.error("Token exchange failed: %s", e)
            finish(AuthError(f"Error exchanging code for token: {e}"))
            return _page("Authentication Failed", "<p>Error exchanging code for token.</p>")

        finish()
        return _page(
            "Authentication Successful!",
            "<p>You can now return to your terminal.</p>",
        )

    return app


async def run_auth_flow(
    auth: SpotifyAuth,
    port: int = 8888,
    timeout: float = 300.0,
    open_browser: Callable[[str], object] = webbrowser.open,
    announce: Callable[[str], None] | None = None,
) -> None:
    """Serve the callback, open the browser, and wait for the redirect.

    Raises:
        AuthError: The user denied access, the exchange failed, or no
            callback arrived within ``timeout`` seconds.
    """
    import uvicorn

    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    app = create_app(auth, done)

    config = uvicorn.Config(
        app,
        host="127.0.0.1",
        port=port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve())

    url = auth.authorize_url()
    if announce is not None:
        announce(url)
    open_browser(url)

    try:
        await asyncio.wait_for(asyncio.shield(done), timeout=timeout)
    except asyncio.TimeoutError:
        minutes = timeout / 60
        raise AuthError(f"Authentication timed out after {minutes:g} minutes") from None
    finally:
        server.should_exit = True
        with contextlib.suppress(asyncio.CancelledError):
            await server_task
