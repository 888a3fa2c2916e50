#!/usr/bin/env python3
"""
Pytest Configuration and Shared Fixtures

Provides an in-memory gateway, a scripted ad provider and wired account
contexts for all tests.
"""

import pytest
import tempfile
import sys
import os
from collections import deque
from pathlib import Path
from typing import Dict, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from account import (
    AdOutcome,
    AdProvider,
    ErrorKind,
    GatewayError,
    Identity,
    Profile,
    SubscriptionDetails,
    TokenStore,
    build_account_context,
)


# ============================================================================
# ASYNCIO CONFIGURATION
# ============================================================================
# Note: pytest-asyncio is configured with asyncio_mode = "auto" in pyproject.toml
# The event loop is automatically managed per-function by default


# ============================================================================
# TEMPORARY DIRECTORIES
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# FAKE GATEWAY
# ============================================================================

class FakeGateway:
    """
    In-memory stand-in for SessionGateway.

    Users live in a dict keyed by email. Every call is recorded in `calls`.
    Tests can:
    - make a method raise by putting a GatewayError in `failures[name]`
    - hold get_profile responses by appending asyncio.Events to `profile_gates`
      (the profile is snapshotted when the call starts, returned when released)
    """

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.sessions: Dict[str, str] = {}
        self.subscriptions: Dict[str, dict] = {}
        self.calls = []
        self.failures: Dict[str, GatewayError] = {}
        self.profile_gates = deque()
        self.verification_emails = []
        self.register_opens_session = True
        self._token: Optional[str] = None
        self._next_id = 1
        self.closed = False

    # ---------- helpers ----------

    def add_user(self, email: str, password: str = "secret123", **profile) -> str:
        user_id = f"user-{self._next_id}"
        self._next_id += 1
        record = {
            "id": user_id,
            "email": email,
            "password": password,
            "username": profile.pop("username", email.split("@")[0]),
            "fullName": profile.pop("full_name", None),
            "rewardUnits": profile.pop("reward_units", 0),
            "isPremium": profile.pop("is_premium", False),
            "subscriptionStatus": profile.pop("subscription_status", "free"),
            "subscriptionId": profile.pop("subscription_id", None),
            "emailVerified": profile.pop("email_verified", False),
        }
        record.update(profile)
        self.users[email] = record
        return user_id

    def user(self, email: str) -> dict:
        return self.users[email]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call == name)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def _issue(self, record: dict) -> Identity:
        token = f"token-{record['id']}-{len(self.sessions) + 1}"
        self.sessions[token] = record["email"]
        return Identity(user_id=record["id"], email=record["email"], token=token)

    def _current(self) -> dict:
        if not self._token or self._token not in self.sessions:
            raise GatewayError(ErrorKind.NOT_AUTHENTICATED, "Invalid or expired session", 401)
        return self.users[self.sessions[self._token]]

    # ---------- SessionGateway surface ----------

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    async def login(self, email, password):
        self._record("login")
        record = self.users.get(email)
        if record is None or record["password"] != password:
            raise GatewayError(ErrorKind.NOT_AUTHENTICATED, "Invalid email or password", 401)
        return self._issue(record)

    async def register(self, email, password, full_name=None, username=None):
        self._record("register")
        if email in self.users:
            raise GatewayError(ErrorKind.SERVER_REJECTED, "User already registered", 400)
        self.add_user(email, password, full_name=full_name, username=username or email.split("@")[0])
        if not self.register_opens_session:
            return None
        return self._issue(self.users[email])

    async def create_profile(self, email, full_name=None, username=None):
        self._record("create_profile")
        return {"email": email}

    async def logout(self):
        self._record("logout")
        self._current()
        self.sessions.pop(self._token, None)

    async def fetch_session_user(self):
        self._record("fetch_session_user")
        record = self._current()
        return Identity(user_id=record["id"], email=record["email"], token=self._token)

    async def request_password_reset(self, email):
        self._record("request_password_reset")

    async def resend_verification(self, email):
        self._record("resend_verification")
        record = self._current()
        if email != record["email"]:
            raise GatewayError(ErrorKind.SERVER_REJECTED, "Unauthorized", 403)
        self.verification_emails.append(email)

    async def get_profile(self):
        self._record("get_profile")
        snapshot = Profile.from_dict(dict(self._current()))
        if self.profile_gates:
            await self.profile_gates.popleft().wait()
        return snapshot

    async def add_rewards(self, amount):
        self._record("add_rewards")
        record = self._current()
        record["rewardUnits"] += amount
        return {"rewardUnits": record["rewardUnits"]}

    async def use_rewards(self, amount, feature_name):
        self._record("use_rewards")
        record = self._current()
        if record["rewardUnits"] < amount:
            raise GatewayError(ErrorKind.INSUFFICIENT_BALANCE, "Insufficient reward units", 400)
        record["rewardUnits"] -= amount
        return {"rewardUnits": record["rewardUnits"]}

    async def verify_subscription(self, external_subscription_id):
        self._record("verify_subscription")
        record = self._current()
        record.update(
            isPremium=True,
            subscriptionStatus="active",
            subscriptionId=external_subscription_id,
        )
        self.subscriptions[external_subscription_id] = {
            "subscriptionId": external_subscription_id,
            "status": "active",
            "planType": "premium_monthly",
            "startDate": "2026-10-01T00:00:00+00:00",
            "nextBillingDate": "2026-11-01T00:00:00+00:00",
        }
        return {"status": "active"}

    async def cancel_subscription(self, subscription_id):
        self._record("cancel_subscription")
        record = self._current()
        record.update(isPremium=False, subscriptionStatus="cancelled", subscriptionId=None)
        if subscription_id in self.subscriptions:
            self.subscriptions[subscription_id]["status"] = "cancelled"
        return {"status": "cancelled"}

    async def get_subscription(self, subscription_id):
        self._record("get_subscription")
        self._current()
        if subscription_id not in self.subscriptions:
            raise GatewayError(ErrorKind.SERVER_REJECTED, "Subscription not found", 404)
        return SubscriptionDetails.from_dict(self.subscriptions[subscription_id])

    async def close(self):
        self.closed = True


# ============================================================================
# SCRIPTED AD PROVIDER
# ============================================================================

class ScriptedAdProvider(AdProvider):
    """Ad provider that plays back a fixed list of outcomes"""

    def __init__(self, outcomes=None, load_result: bool = True):
        self.outcomes = deque(outcomes or [])
        self.load_result = load_result
        self.load_calls = 0
        self.show_calls = 0
        self.show_gate = None
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> bool:
        self.load_calls += 1
        self._loaded = self.load_result
        return self.load_result

    async def show(self) -> AdOutcome:
        self.show_calls += 1
        if self.show_gate is not None:
            await self.show_gate.wait()
        self._loaded = False
        if not self.outcomes:
            return AdOutcome.failed("No scripted outcome")
        return self.outcomes.popleft()


# ============================================================================
# ACCOUNT FIXTURES
# ============================================================================

@pytest.fixture
def gateway():
    gw = FakeGateway()
    gw.add_user("agent@example.com", "secret123", full_name="Ada Agent", reward_units=0)
    return gw


@pytest.fixture
def ad_provider():
    return ScriptedAdProvider()


@pytest.fixture
def token_store(temp_dir):
    """Token store with persistence disabled"""
    return TokenStore(temp_dir / "session.json", None, None)


@pytest.fixture
def context(gateway, ad_provider, token_store):
    """Fully wired account context backed by the fake gateway"""
    return build_account_context(
        gateway=gateway,
        ad_provider=ad_provider,
        token_store=token_store,
    )


@pytest.fixture
async def logged_in(context):
    """Context with agent@example.com logged in"""
    result = await context.identity.login("agent@example.com", "secret123")
    assert result.ok
    return context


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "api: marks tests that go through the HTTP bridge")
