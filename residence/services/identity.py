"""
Identity service client.
Signs users in and up, issues session cookies and verifies them on every request.
"""

import logging
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from residence.config import get_config
from residence.database import get_session
from residence.exceptions import IdentityError, SessionVerificationError
from residence.models import Role, VerifiedSession
from residence.repositories import UserRepository

logger = logging.getLogger(__name__)


class SessionVerifier(Protocol):
    """Anything that can turn a session cookie into a verified identity"""

    async def verify_session_cookie(self, session_cookie: str) -> VerifiedSession:
        ...


def _error_from_response(response: httpx.Response) -> Dict[str, str]:
    """Pull {code, message} out of an identity-service error body"""
    try:
        body = response.json()
    except ValueError:
        return {"code": f"http_{response.status_code}", "message": response.text}

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return {
            "code": str(error.get("code", f"http_{response.status_code}")),
            "message": str(error.get("message", "")),
        }
    return {"code": f"http_{response.status_code}", "message": str(error or "")}


class IdentityClient:
    """
    HTTP client for the identity service.

    One AsyncClient is shared by all calls; no retries are performed, the
    configured timeout applies to every request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = get_config()
        self.base_url = (base_url or config.identity_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else config.identity_api_key
        self.timeout = timeout or config.identity_timeout

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self.client.post(path, json=payload)

    async def verify_session_cookie(self, session_cookie: str) -> VerifiedSession:
        """
        Verify a session cookie.

        Args:
            session_cookie: Opaque cookie value issued by create_session_cookie

        Returns:
            VerifiedSession for the cookie owner

        Raises:
            SessionVerificationError: For any failure (expired, revoked,
                malformed, timeout, transport error)
        """
        try:
            response = await self._post(
                "/v1/sessions/verify", {"session_cookie": session_cookie}
            )
        except httpx.TimeoutException as e:
            raise SessionVerificationError("timeout", str(e))
        except httpx.HTTPError as e:
            raise SessionVerificationError("transport", str(e))

        if response.status_code != 200:
            error = _error_from_response(response)
            raise SessionVerificationError(error["code"], error["message"])

        # Only uid and email are taken from the identity service; the role
        # comes from the local profile (see ProfileSessionVerifier)
        try:
            data = response.json()
            return VerifiedSession(uid=data["uid"], email=data.get("email"))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SessionVerificationError("malformed_response", str(e))

    async def _call(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST and return the JSON body, raising IdentityError on failure"""
        try:
            response = await self._post(path, payload)
        except httpx.TimeoutException:
            raise IdentityError("timeout", "Identity service timed out")
        except httpx.HTTPError as e:
            raise IdentityError("transport", f"Identity service unreachable: {e}")

        if response.status_code != 200:
            error = _error_from_response(response)
            raise IdentityError(error["code"], error["message"] or "Authentication failed")

        try:
            return response.json()
        except ValueError:
            raise IdentityError("malformed_response", "Identity service returned invalid JSON")

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for {uid, id_token, email}"""
        data = await self._call(
            "/v1/accounts:signIn", {"email": email, "password": password}
        )
        if "uid" not in data or "id_token" not in data:
            raise IdentityError("malformed_response", "Sign-in response is missing uid or id_token")
        return data

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Create an account, returning {uid, email}"""
        data = await self._call(
            "/v1/accounts:signUp", {"email": email, "password": password}
        )
        if "uid" not in data:
            raise IdentityError("malformed_response", "Sign-up response is missing uid")
        return data

    async def create_session_cookie(self, id_token: str, expires_in: int) -> str:
        """
        Mint a session cookie from a fresh ID token.

        Args:
            id_token: Token returned by sign_in
            expires_in: Cookie lifetime in seconds
        """
        data = await self._call(
            "/v1/sessions", {"id_token": id_token, "expires_in": expires_in}
        )
        cookie = data.get("session_cookie")
        if not cookie:
            raise IdentityError("malformed_response", "Session response is missing session_cookie")
        return cookie

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()


class ProfileSessionVerifier:
    """
    Verifies the cookie with the identity service, then reads the caller's
    role from their UserProfile. Accounts without a profile are students.
    """

    def __init__(self, verifier: SessionVerifier, session_factory: Optional[Callable] = None):
        self.verifier = verifier
        self.session_factory = session_factory or get_session

    def _profile_role(self, uid: str) -> Role:
        with self.session_factory() as session:
            profile = UserRepository(session).get_user(uid)
            if profile is None:
                return Role.STUDENT
            try:
                return Role(profile.role)
            except ValueError:
                logger.warning(f"Profile {uid} has unknown role '{profile.role}', treating as student")
                return Role.STUDENT

    async def verify_session_cookie(self, session_cookie: str) -> VerifiedSession:
        verified = await self.verifier.verify_session_cookie(session_cookie)
        try:
            role = await run_in_threadpool(self._profile_role, verified.uid)
        except SQLAlchemyError as e:
            raise SessionVerificationError("profile_lookup", str(e))
        return VerifiedSession(uid=verified.uid, email=verified.email, role=role)


# Singleton instance
_identity_client: Optional[IdentityClient] = None


def get_identity_client() -> IdentityClient:
    """Get or create identity client singleton"""
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityClient()
        logger.info(f"Identity client created for {_identity_client.base_url}")
    return _identity_client


async def cleanup_identity_client():
    """
    Close the identity client.
    Call this on application shutdown.
    """
    global _identity_client
    if _identity_client is not None:
        await _identity_client.close()
        _identity_client = None
