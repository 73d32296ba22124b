"""HTTP bridge for the Bolt Forge auth session manager.

Exposes one manager instance to a browser front end running on the same
machine. Every response carries JSON; errors use ``{"error": {...}}`` with
a status code derived from the error kind.
"""

import contextlib
import logging
from typing import Any

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from ..config import AuthConfig
from ..errors import AuthError, AuthValidationError, ErrorKind, describe_error
from ..forms import AuthFormController
from ..manager import AuthSessionManager

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.OAUTH: 400,
    ErrorKind.CREDENTIALS: 401,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.SERVER: 502,
    ErrorKind.NETWORK: 503,
    ErrorKind.UNKNOWN: 500,
}


def error_response(error: AuthError) -> JSONResponse:
    """Render an auth error as JSON with the matching status code."""
    payload = error.to_dict()
    payload["message"] = describe_error(error).message
    headers = {}
    if error.kind is ErrorKind.RATE_LIMITED:
        headers["Retry-After"] = str(payload["remaining_time"])
    return JSONResponse(
        {"error": payload}, status_code=STATUS_BY_KIND.get(error.kind, 500), headers=headers
    )


async def _read_json(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except Exception as e:
        logger.error(f"JSON parse error: {e}")
        raise AuthValidationError(f"Parse error: {e}")
    if not isinstance(body, dict):
        raise AuthValidationError("Request body must be a JSON object")
    return body


def create_http_app(
    manager: AuthSessionManager, controller: AuthFormController, config: AuthConfig
) -> Starlette:
    """Create Starlette HTTP app for the auth session manager.

    Args:
        manager: Session manager owning the auth state
        controller: Form controller guarding the sign in form
        config: Provides the allowed CORS origins

    Returns:
        Starlette application instance
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        state = await manager.initialize()
        logger.info(f"Auth bridge ready (authenticated={state.is_authenticated})")
        yield
        aclose = getattr(manager.identity, "aclose", None)
        if aclose is not None:
            await aclose()

    def state_response(status_code: int = 200) -> JSONResponse:
        return JSONResponse({"state": manager.state.to_dict()}, status_code=status_code)

    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(
            {
                "status": "ok",
                "server": "boltforge-auth",
                "initialized": manager.state.is_initialized,
            }
        )

    async def get_state(request: Request) -> JSONResponse:
        return state_response()

    async def sign_in(request: Request) -> Response:
        try:
            await controller.submit_sign_in(await _read_json(request))
        except AuthError as e:
            return error_response(e)
        return state_response()

    async def sign_up(request: Request) -> Response:
        try:
            await controller.submit_sign_up(await _read_json(request))
        except AuthError as e:
            return error_response(e)
        return state_response(status_code=201)

    async def sign_out(request: Request) -> Response:
        await manager.sign_out()
        return state_response()

    async def refresh(request: Request) -> Response:
        await manager.refresh()
        return state_response()

    async def update_profile(request: Request) -> Response:
        try:
            profile = await manager.update_profile(await _read_json(request))
        except AuthError as e:
            return error_response(e)
        return JSONResponse({"profile": profile.to_dict()})

    async def reset_password(request: Request) -> Response:
        try:
            await controller.submit_password_reset(await _read_json(request))
        except AuthError as e:
            return error_response(e)
        return JSONResponse({"status": "sent"}, status_code=202)

    async def change_password(request: Request) -> Response:
        try:
            await controller.submit_password_change(await _read_json(request))
        except AuthError as e:
            return error_response(e)
        return JSONResponse({"status": "updated"})

    async def oauth_start(request: Request) -> Response:
        provider = request.path_params["provider"]
        try:
            url = await controller.submit_oauth(provider)
        except AuthError as e:
            return error_response(e)
        return RedirectResponse(url, status_code=302)

    async def oauth_return(request: Request) -> Response:
        state = await manager.complete_oauth(request.query_params.get("error"))
        if state.error is not None:
            return JSONResponse(
                {"state": state.to_dict()}, status_code=STATUS_BY_KIND.get(state.error.kind, 500)
            )
        return state_response()

    async def rate_limit_status(request: Request) -> JSONResponse:
        return JSONResponse(controller.lockout_status().to_dict())

    # Create app
    app = Starlette(
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Route("/auth/state", get_state, methods=["GET"]),
            Route("/auth/sign-in", sign_in, methods=["POST"]),
            Route("/auth/sign-up", sign_up, methods=["POST"]),
            Route("/auth/sign-out", sign_out, methods=["POST"]),
            Route("/auth/refresh", refresh, methods=["POST"]),
            Route("/auth/profile", update_profile, methods=["PATCH"]),
            Route("/auth/password/reset", reset_password, methods=["POST"]),
            Route("/auth/password/change", change_password, methods=["POST"]),
            Route("/auth/oauth/return", oauth_return, methods=["GET"]),
            Route("/auth/oauth/{provider}", oauth_start, methods=["GET"]),
            Route("/auth/rate-limit", rate_limit_status, methods=["GET"]),
        ],
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    return app
