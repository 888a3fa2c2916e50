"""
Account Core for Realty Desk

Client-side session and entitlement state:
- Identity (who is logged in)
- Profile cache (server profile mirror)
- Reward units (earned by watching ads, spent on gated features)
- Premium subscription (PayPal-backed)

Architecture:
- The backend gateway is the single source of truth
- Local state is a read-through cache, refetched after every confirmed mutation
- Every operation returns an OperationResult and never raises past its boundary
"""

from account.errors import ErrorKind, GatewayError, OperationResult
from account.models import (
    Identity,
    Profile,
    SubscriptionStatus,
    SubscriptionPhase,
    SubscriptionDetails,
    AdOutcome,
    AdOutcomeType,
    FeatureUnlock,
)
from account.gateway import SessionGateway
from account.token_store import TokenStore
from account.profile_cache import ProfileCache
from account.identity_store import IdentityStore
from account.ad_provider import AdProvider, SimulatedAdProvider
from account.feature_gate import FeatureGate
from account.reward_ledger import RewardLedger
from account.subscription_machine import SubscriptionStateMachine
from account.context import AccountContext, build_account_context

__all__ = [
    # Results and errors
    'ErrorKind',
    'GatewayError',
    'OperationResult',
    # Models
    'Identity',
    'Profile',
    'SubscriptionStatus',
    'SubscriptionPhase',
    'SubscriptionDetails',
    'AdOutcome',
    'AdOutcomeType',
    'FeatureUnlock',
    # Services
    'SessionGateway',
    'TokenStore',
    'ProfileCache',
    'IdentityStore',
    'AdProvider',
    'SimulatedAdProvider',
    'FeatureGate',
    'RewardLedger',
    'SubscriptionStateMachine',
    'AccountContext',
    'build_account_context',
]
