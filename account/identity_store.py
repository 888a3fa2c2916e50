"""
Identity Store - Who is logged in

Holds the current authenticated identity (or none) and delegates login,
registration and logout to the session gateway. Every identity change is
followed by a profile cache refresh (login) or clear (logout).
"""

import logging
from contextlib import contextmanager
from typing import Optional

from account.errors import ErrorKind, GatewayError, OperationResult
from account.models import Identity
from account.profile_cache import ProfileCache
from account.token_store import TokenStore

logger = logging.getLogger(__name__)


class IdentityStore:
    """
    Owns the session identity.

    Failures are reported as OperationResult with a user-facing message;
    nothing is retried automatically.
    """

    def __init__(
        self,
        gateway,
        profile_cache: ProfileCache,
        token_store: Optional[TokenStore] = None,
    ):
        self._gateway = gateway
        self._profile_cache = profile_cache
        self._token_store = token_store
        self._identity: Optional[Identity] = None
        self._pending = 0
        self._initialized = False
        self.last_error: Optional[str] = None

    # ========== State ==========

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def is_loading(self) -> bool:
        """True during any in-flight auth operation or before the initial session probe"""
        return self._pending > 0 or not self._initialized

    @contextmanager
    def _busy(self):
        self._pending += 1
        self.last_error = None
        try:
            yield
        finally:
            self._pending -= 1
            self._initialized = True

    def _set_identity(self, identity: Optional[Identity]) -> None:
        previous = self._identity
        self._identity = identity
        self._gateway.set_token(identity.token if identity else None)
        if previous is not None and (identity is None or identity.user_id != previous.user_id):
            self._profile_cache.clear()

    def _fail(self, error: ErrorKind, message: str) -> OperationResult:
        self.last_error = message
        return OperationResult.failure(error, message)

    # ========== Operations ==========

    async def initialize(self) -> OperationResult:
        """
        Initial session probe: restore a remembered session and validate it.

        An expired or revoked token is discarded.
        """
        with self._busy():
            stored = self._token_store.load() if self._token_store else None
            if stored is None:
                return OperationResult.success("No saved session", value=False)

            self._gateway.set_token(stored.token)
            try:
                user = await self._gateway.fetch_session_user()
            except GatewayError as e:
                self._gateway.set_token(None)
                if e.kind == ErrorKind.NOT_AUTHENTICATED and self._token_store:
                    self._token_store.clear()
                logger.warning(f"Saved session could not be restored: {e.message}")
                return self._fail(e.kind, e.message)

            self._set_identity(Identity(user_id=user.user_id, email=user.email, token=stored.token))
            logger.info(f"Restored session for {user.email}")
            await self._profile_cache.refresh()
            return OperationResult.success("Session restored")

    async def login(self, email: str, password: str, remember_me: bool = False) -> OperationResult:
        """
        Log in and load the profile.

        Args:
            email: User's email
            password: User's password
            remember_me: Persist the session token for the next run

        Returns:
            OperationResult; on failure the identity is left unset
        """
        with self._busy():
            # Logging in replaces whatever session was there before
            if self._identity is not None:
                self._set_identity(None)

            try:
                identity = await self._gateway.login(email, password)
            except GatewayError as e:
                logger.warning(f"Login failed for {email}: {e.message}")
                return self._fail(e.kind, e.message)

            self._set_identity(identity)
            if self._token_store:
                if remember_me:
                    self._token_store.save(identity)
                else:
                    self._token_store.clear()

            logger.info(f"Login successful for {email}")
            refreshed = await self._profile_cache.refresh()
            if not refreshed.ok:
                logger.warning(f"Logged in but profile could not be loaded: {refreshed.message}")
            return OperationResult.success(f"Welcome back, {email}")

    async def register(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> OperationResult:
        """
        Create an account, then provision its profile record server-side.

        If the gateway opens a session for the new account the user is logged
        in; otherwise they are asked to log in.
        """
        with self._busy():
            try:
                identity = await self._gateway.register(email, password, full_name, username)
            except GatewayError as e:
                logger.warning(f"Registration failed for {email}: {e.message}")
                return self._fail(e.kind, e.message)

            if identity is not None:
                self._set_identity(identity)

            try:
                await self._gateway.create_profile(email, full_name, username)
            except GatewayError as e:
                if identity is not None:
                    self._set_identity(None)
                logger.error(f"Profile provisioning failed for {email}: {e.message}")
                return self._fail(e.kind, f"Account created but profile setup failed: {e.message}")

            logger.info(f"Registered {email}")
            if identity is None:
                return OperationResult.success("Account created. Please log in.", value=False)

            await self._profile_cache.refresh()
            return OperationResult.success("Account created", value=True)

    async def logout(self) -> OperationResult:
        """
        Invalidate the remote session and clear local state.

        Local identity, profile and remembered token are cleared even when the
        gateway cannot be reached.
        """
        with self._busy():
            if self._identity is None:
                return OperationResult.success("Already logged out")

            message = "Logged out successfully"
            try:
                await self._gateway.logout()
            except GatewayError as e:
                logger.warning(f"Logout error (cleared locally): {e.message}")
                message = "Logged out locally"
            finally:
                self._set_identity(None)
                self._profile_cache.clear()
                if self._token_store:
                    self._token_store.clear()

            return OperationResult.success(message)

    async def request_password_reset(self, email: str) -> OperationResult:
        with self._busy():
            try:
                await self._gateway.request_password_reset(email)
            except GatewayError as e:
                return self._fail(e.kind, e.message)
            return OperationResult.success("Check your email for a link to reset your password.")

    async def resend_verification(self) -> OperationResult:
        """Send the signup verification email again for an unverified account"""
        if self._identity is None:
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "You must be logged in to verify your email")
        profile = self._profile_cache.profile
        if profile is None:
            return self._fail(ErrorKind.INVALID_REQUEST, "Profile is not loaded yet")
        if profile.email_verified:
            return self._fail(ErrorKind.INVALID_REQUEST, "Email is already verified")

        email = self._identity.email
        with self._busy():
            try:
                await self._gateway.resend_verification(email)
            except GatewayError as e:
                logger.warning(f"Resending verification to {email} failed: {e.message}")
                return self._fail(e.kind, e.message)
            return OperationResult.success(
                "Verification email sent. Please check your inbox and click the verification link."
            )
