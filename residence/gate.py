"""
Session gate.
Decides for every inbound request whether it may proceed or must be sent to the login page.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from residence.config import get_config
from residence.exceptions import SessionVerificationError
from residence.models import VerifiedSession
from residence.services.identity import SessionVerifier

logger = logging.getLogger(__name__)

# Paths the gate never runs on (static assets, image optimization, favicon, public files)
UNMATCHED_PREFIXES = (
    "/_next/static",
    "/_next/image",
    "/static",
    "/favicon.ico",
    "/public",
)


@dataclass
class GateDecision:
    """Allow the request through, or redirect it"""
    proceed: bool
    redirect_to: Optional[str] = None
    session: Optional[VerifiedSession] = None

    @classmethod
    def allow(cls, session: Optional[VerifiedSession] = None) -> "GateDecision":
        return cls(proceed=True, session=session)

    @classmethod
    def redirect(cls, location: str) -> "GateDecision":
        return cls(proceed=False, redirect_to=location)


def is_protected_path(path: str) -> bool:
    """True when the gate applies to this path at all"""
    return not path.startswith(UNMATCHED_PREFIXES)


def is_public_path(path: str, public_paths: Iterable[str]) -> bool:
    return any(path.startswith(prefix) for prefix in public_paths)


async def evaluate(
    path: str,
    session_cookie: Optional[str],
    verifier: SessionVerifier,
    public_paths: Optional[Iterable[str]] = None,
    login_path: Optional[str] = None,
) -> GateDecision:
    """
    Decide whether a request proceeds.

    Public paths proceed without looking at the cookie. Everything else
    needs a cookie the verifier accepts; any verification failure turns
    into a redirect to the login page.
    """
    config = get_config()
    public_paths = config.public_paths if public_paths is None else public_paths
    login_path = login_path or config.login_path

    if is_public_path(path, public_paths):
        return GateDecision.allow()

    if not session_cookie:
        logger.debug(f"No session cookie for {path}, redirecting to {login_path}")
        return GateDecision.redirect(login_path)

    try:
        session = await verifier.verify_session_cookie(session_cookie)
    except SessionVerificationError as e:
        logger.warning(f"Session rejected for {path}: {e.reason}")
        return GateDecision.redirect(login_path)

    return GateDecision.allow(session)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """
    Applies evaluate() to every matched request.

    The verified session, if any, is exposed as request.state.session.
    """

    def __init__(self, app, verifier_factory: Callable[[], SessionVerifier]):
        super().__init__(app)
        self.verifier_factory = verifier_factory

    async def dispatch(self, request: Request, call_next):
        request.state.session = None
        path = request.url.path

        if not is_protected_path(path):
            return await call_next(request)

        config = get_config()
        decision = await evaluate(
            path,
            request.cookies.get(config.session_cookie_name),
            self.verifier_factory(),
            public_paths=config.public_paths,
            login_path=config.login_path,
        )

        if not decision.proceed:
            return RedirectResponse(url=decision.redirect_to, status_code=307)

        request.state.session = decision.session
        return await call_next(request)
