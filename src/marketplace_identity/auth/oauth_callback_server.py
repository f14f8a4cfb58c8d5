"""
OAuth Callback Server for Marketplace Identity.

Serves the application page the provider redirects back to. Query parameters
are handed to OAuthRedirectFlow.handle_callback; handled callbacks are
answered with a redirect so that the code and state never stay in the
address bar.
"""

import asyncio
import html
import logging
import socket
import threading
import time
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from .oauth_flow import OAuthRedirectFlow
from ..session.store import SessionStore

logger = logging.getLogger(__name__)


def _create_page_html(title: str, body: str) -> str:
    """Create a minimal HTML page."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><title>{html.escape(title)}</title></head>
    <body>
        <h1>{html.escape(title)}</h1>
        {body}
    </body>
    </html>
    """


def create_callback_app(flow: OAuthRedirectFlow, store: SessionStore) -> FastAPI:
    """
    Build the FastAPI app serving the auth and landing views.

    Args:
        flow: The redirect flow that validates and exchanges callbacks.
        store: Session store, read to render the current session.

    Returns:
        The configured FastAPI application.
    """
    app = FastAPI()
    app.state.flash = None
    auth_path = flow.config.auth_path
    landing_path = flow.config.landing_path

    @app.get(auth_path)
    async def auth_page(request: Request):
        """Auth entry view; doubles as the OAuth redirect target."""
        params = request.query_params
        outcome = await flow.handle_callback(
            params.get("code"), params.get("state"), error=params.get("error")
        )

        if outcome.handled:
            app.state.flash = outcome.message
            return RedirectResponse(outcome.redirect_to, status_code=303)

        message = app.state.flash
        app.state.flash = None
        parts = []
        if message:
            parts.append(f'<p class="message">{html.escape(message)}</p>')
        if store.is_authenticated:
            parts.append("<p>You are already signed in.</p>")
        else:
            parts.append("<p>Sign in to continue.</p>")
        return HTMLResponse(_create_page_html("Sign in", "\n".join(parts)))

    @app.get(landing_path)
    async def landing_page():
        """Authenticated landing view."""
        identity = store.identity
        if identity is None:
            return RedirectResponse(auth_path, status_code=303)

        message = app.state.flash
        app.state.flash = None
        parts = []
        if message:
            parts.append(f'<p class="message">{html.escape(message)}</p>')
        parts.append(
            f'<p class="email">{html.escape(identity.email or str(identity.id))}</p>'
        )
        parts.append("<p>You can close this window and return to your application.</p>")
        return HTMLResponse(_create_page_html("Authentication Successful", "\n".join(parts)))

    return app


class MinimalOAuthServer:
    """
    Minimal HTTP server for OAuth callbacks.
    Only starts when needed and runs in a background thread.
    """

    def __init__(self, app: FastAPI, port: int = 3000, host: str = "localhost") -> None:
        self.app = app
        self.port = port
        self.host = host
        self.server: Optional[uvicorn.Server] = None
        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

    def start(self) -> Tuple[bool, str]:
        """
        Start the callback server.

        Returns:
            Tuple of (success: bool, error_message: str)
        """
        if self.is_running:
            logger.info("OAuth callback server is already running")
            return True, ""

        # Check if port is available
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((self.host, self.port))
        except OSError:
            error_msg = f"Port {self.port} is already in use"
            logger.error(error_msg)
            return False, error_msg

        def run_server() -> None:
            """Run the server in a separate thread."""
            try:
                config = uvicorn.Config(
                    self.app,
                    host=self.host,
                    port=self.port,
                    log_level="warning",
                    access_log=False,
                )
                self.server = uvicorn.Server(config)
                asyncio.run(self.server.serve())
            except Exception as e:
                logger.error(f"OAuth callback server error: {e}", exc_info=True)
                self.is_running = False

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()

        # Wait for server to start
        max_wait = 3.0
        start_time = time.time()
        while time.time() - start_time < max_wait:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                if s.connect_ex((self.host, self.port)) == 0:
                    self.is_running = True
                    logger.info(f"OAuth callback server started on {self.host}:{self.port}")
                    return True, ""
            time.sleep(0.1)

        error_msg = f"Failed to start OAuth callback server on {self.host}:{self.port}"
        logger.error(error_msg)
        return False, error_msg

    def stop(self) -> None:
        """Stop the callback server."""
        if not self.is_running:
            return

        if self.server is not None:
            self.server.should_exit = True
        if self.server_thread and self.server_thread.is_alive():
            self.server_thread.join(timeout=3.0)

        self.is_running = False
        logger.info("OAuth callback server stopped")
