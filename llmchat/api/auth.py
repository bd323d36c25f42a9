"""Form endpoints that hand credentials to the auth service.

The service does the actual authentication; these routes only translate
its answer into a cookie and a redirect.
"""

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import RedirectResponse

from llmchat.api.deps import Services, get_services
from llmchat.errors import ProviderUnavailable, Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

HOME_PATH = "/chat"
LOGIN_PATH = "/login"
REGISTER_PATH = "/register"


def _safe_target(target: str | None) -> str:
    """Only follow same-site absolute paths."""
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return HOME_PATH


def _redirect_with(path: str, **params: str) -> RedirectResponse:
    url = f"{path}?{urlencode(params, safe='/')}" if params else path
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/login")
async def login(
    email: Annotated[str, Form()],
    password: Annotated[str, Form()],
    redirected_from: Annotated[str | None, Form(alias="redirectedFrom")] = None,
    services: Services = Depends(get_services),
) -> RedirectResponse:
    """Sign in with email and password and store the access token cookie."""
    try:
        session = await services.auth.sign_in_with_password(email, password)
    except Unauthenticated as e:
        logger.info(f"Login refused for {email}: {e}")
        params = {"error": str(e)}
        if redirected_from:
            params["redirectedFrom"] = redirected_from
        return _redirect_with(LOGIN_PATH, **params)
    except ProviderUnavailable as e:
        logger.error(f"Login failed, auth service unavailable: {e}")
        return _redirect_with(LOGIN_PATH, error="Authentication service unavailable")

    response = _redirect_with(_safe_target(redirected_from))
    response.set_cookie(
        services.cookie_name,
        session.access_token,
        httponly=True,
        samesite="lax",
        path="/",
    )
    logger.info(f"User {session.identity.id} signed in")
    return response


@router.post("/register")
async def register(
    email: Annotated[str, Form()],
    password: Annotated[str, Form()],
    full_name: Annotated[str | None, Form()] = None,
    services: Services = Depends(get_services),
) -> RedirectResponse:
    """Create an account; the service sends its own confirmation email."""
    try:
        await services.auth.sign_up(email, password, full_name=full_name)
    except Unauthenticated as e:
        logger.info(f"Registration refused for {email}: {e}")
        return _redirect_with(REGISTER_PATH, error=str(e))
    except ProviderUnavailable as e:
        logger.error(f"Registration failed, auth service unavailable: {e}")
        return _redirect_with(REGISTER_PATH, error="Authentication service unavailable")

    return _redirect_with(LOGIN_PATH, registered="1")


@router.get("/logout")
async def logout(services: Services = Depends(get_services)) -> RedirectResponse:
    """Drop the access token cookie."""
    response = _redirect_with(LOGIN_PATH)
    response.delete_cookie(services.cookie_name, path="/")
    return response
