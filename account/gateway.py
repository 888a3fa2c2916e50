"""
Session Gateway - Async client for the CRM backend

This is the only module that performs network I/O. It handles:
- Session issuance and validation (login, register, logout, session probe)
- Profile retrieval
- Reward unit mutations
- Subscription verification and cancellation

Every call is a single coroutine, so callers may wrap it in asyncio.wait_for.
Failures are raised as GatewayError with an ErrorKind attached.
"""

import asyncio
import logging
from typing import Optional, Dict, Any

import aiohttp

from account.errors import ErrorKind, GatewayError
from account.models import Identity, Profile, SubscriptionDetails

logger = logging.getLogger(__name__)


INSUFFICIENT_BALANCE_CODES = {"insufficientbalance", "insufficient_balance"}


class SessionGateway:
    """
    Async HTTP client for the remote session gateway.

    The bearer token is held here once the identity store has one; requests
    marked use_auth fail with NOT_AUTHENTICATED when no token is set.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            base_url: Gateway root, e.g. https://crm.example.com/api
            timeout: Total per-request timeout in seconds
            session: Optional shared aiohttp session (not closed by the gateway)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._token: Optional[str] = None

    # ========== Token ==========

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    # ========== Auth ==========

    async def login(self, email: str, password: str) -> Identity:
        """POST /auth/login, returns the issued identity"""
        data = await self._request(
            "POST", "/auth/login", {"email": email, "password": password}, use_auth=False
        )
        identity = _identity_from_auth_response(data)
        if identity is None:
            raise GatewayError(ErrorKind.SERVER_REJECTED, "Invalid login response from server")
        return identity

    async def register(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[Identity]:
        """
        POST /auth/register.

        Returns:
            The identity if the server opened a session for the new account,
            otherwise None (the user has to log in, e.g. after email verification).
        """
        payload = {
            "email": email,
            "password": password,
            "fullName": full_name,
            "username": username,
        }
        data = await self._request("POST", "/auth/register", payload, use_auth=False)
        return _identity_from_auth_response(data)

    async def create_profile(
        self,
        email: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST /users - provision the profile record for a new account"""
        payload = {"email": email, "fullName": full_name, "username": username}
        return await self._request("POST", "/users", payload, use_auth=self._token is not None)

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")

    async def fetch_session_user(self) -> Identity:
        """GET /auth/me - validate the current token"""
        data = await self._request("GET", "/auth/me")
        user = data.get("user", data)
        if not isinstance(user, dict) or not user.get("id"):
            raise GatewayError(ErrorKind.NOT_AUTHENTICATED, "Session is no longer valid")
        return Identity(user_id=str(user["id"]), email=user.get("email", ""), token=self._token or "")

    async def request_password_reset(self, email: str) -> None:
        await self._request("POST", "/auth/forgot-password", {"email": email}, use_auth=False)

    async def resend_verification(self, email: str) -> None:
        """POST /auth/resend-verification - the email must belong to the session user"""
        await self._request("POST", "/auth/resend-verification", {"email": email})

    # ========== Profile ==========

    async def get_profile(self) -> Profile:
        data = await self._request("GET", "/profile")
        return Profile.from_dict(data)

    # ========== Reward Units ==========

    async def add_rewards(self, amount: int) -> Dict[str, Any]:
        return await self._request("POST", "/rewards/add", {"amount": amount})

    async def use_rewards(self, amount: int, feature_name: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/rewards/use", {"amount": amount, "featureName": feature_name}
        )

    # ========== Subscriptions ==========

    async def verify_subscription(self, external_subscription_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/subscriptions/verify",
            {"externalSubscriptionId": external_subscription_id},
        )

    async def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/subscriptions/cancel", {"subscriptionId": subscription_id}
        )

    async def get_subscription(self, subscription_id: str) -> SubscriptionDetails:
        data = await self._request("GET", f"/subscriptions/{subscription_id}")
        details = SubscriptionDetails.from_dict(data)
        if not details.subscription_id:
            details = SubscriptionDetails.from_dict({**data, "subscriptionId": subscription_id})
        return details

    # ========== Transport ==========

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        use_auth: bool = True,
    ) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        if use_auth:
            if not self._token:
                raise GatewayError(ErrorKind.NOT_AUTHENTICATED, "You must be logged in")
            headers["Authorization"] = f"Bearer {self._token}"

        url = f"{self.base_url}{path}"
        session = await self._get_session()

        try:
            async with session.request(
                method, url, json=payload, headers=headers, timeout=self._timeout
            ) as response:
                data = await _read_json(response)
                if 200 <= response.status < 300:
                    return data
                message = _extract_error_message(data, response.status)
                kind = _error_kind_for(response.status, data)
                logger.warning(f"{method} {path} failed with {response.status}: {message}")
                raise GatewayError(kind, message, status_code=response.status)
        except GatewayError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {path} could not reach server: {e!r}")
            raise GatewayError(ErrorKind.NETWORK_ERROR, f"Could not reach server: {e}") from e


async def _read_json(response: aiohttp.ClientResponse) -> Dict[str, Any]:
    try:
        data = await response.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _extract_error_message(data: Dict[str, Any], status: int) -> str:
    message = data.get("message") or data.get("error")
    if isinstance(message, dict):
        message = message.get("message") or message.get("detail")
    if isinstance(message, str) and message:
        return message
    return f"Server error: {status}"


def _error_kind_for(status: int, data: Dict[str, Any]) -> ErrorKind:
    if status == 401:
        return ErrorKind.NOT_AUTHENTICATED
    code = data.get("error") or data.get("code")
    if isinstance(code, str) and code.lower() in INSUFFICIENT_BALANCE_CODES:
        return ErrorKind.INSUFFICIENT_BALANCE
    if 400 <= status < 500:
        return ErrorKind.SERVER_REJECTED
    return ErrorKind.NETWORK_ERROR


def _identity_from_auth_response(data: Dict[str, Any]) -> Optional[Identity]:
    """Build an identity from {session, user}; None when no session was issued"""
    session = data.get("session")
    if isinstance(session, dict):
        token = session.get("access_token") or session.get("token")
    else:
        token = session or data.get("token")
    if not token:
        return None

    user = data.get("user")
    if not isinstance(user, dict) and isinstance(session, dict):
        user = session.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        return None

    return Identity(user_id=str(user["id"]), email=user.get("email", ""), token=str(token))
