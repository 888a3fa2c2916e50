"""
Account Data Models

Identity, profile and subscription structures mirrored from the gateway.
Profiles are immutable: a refresh replaces the whole object so readers
never see a partially applied update.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime, timedelta


class SubscriptionStatus(str, Enum):
    """Subscription status as reported by the gateway"""
    FREE = "free"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'SubscriptionStatus':
        """Map a raw status string to a status, treating unknown values as free"""
        if not value:
            return cls.FREE
        try:
            return cls(value.lower())
        except ValueError:
            return cls.FREE


class SubscriptionPhase(str, Enum):
    """Client-visible state of the subscription state machine"""
    FREE = "free"
    PENDING_UPGRADE = "pending_upgrade"
    ACTIVE = "active"
    PENDING_CANCEL = "pending_cancel"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class AdOutcomeType(str, Enum):
    EARNED = "earned"
    CANCELED = "canceled"
    FAILED = "failed"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; the gateway mixes camelCase and snake_case"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Identity:
    """Authenticated session: opaque token plus the minimal user record"""
    user_id: str
    email: str
    token: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email}


@dataclass(frozen=True)
class Profile:
    """Denormalized user profile, never authoritative"""
    user_id: str
    email: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    is_premium: bool = False
    reward_units: int = 0
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE
    subscription_id: Optional[str] = None
    email_verified: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        first = _pick(data, "first_name", "firstName")
        last = _pick(data, "last_name", "lastName")
        full_name = _pick(data, "fullName", "full_name")
        if full_name is None and (first or last):
            full_name = " ".join(part for part in (first, last) if part)

        units = _pick(data, "rewardUnits", "reward_units", default=0)
        try:
            units = max(0, int(units))
        except (TypeError, ValueError):
            units = 0

        return cls(
            user_id=str(_pick(data, "id", "userId", "user_id", default="")),
            email=_pick(data, "email", default=""),
            username=_pick(data, "username"),
            full_name=full_name,
            is_premium=bool(_pick(data, "isPremium", "is_premium", default=False)),
            reward_units=units,
            subscription_status=SubscriptionStatus.parse(
                _pick(data, "subscriptionStatus", "subscription_status")
            ),
            subscription_id=_pick(data, "subscriptionId", "subscription_id"),
            email_verified=bool(_pick(data, "emailVerified", "email_verified", default=False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "email": self.email,
            "username": self.username,
            "fullName": self.full_name,
            "isPremium": self.is_premium,
            "rewardUnits": self.reward_units,
            "subscriptionStatus": self.subscription_status.value,
            "subscriptionId": self.subscription_id,
            "emailVerified": self.email_verified,
        }


@dataclass(frozen=True)
class SubscriptionDetails:
    """Extended subscription info from GET /subscriptions/:id"""
    subscription_id: str
    status: SubscriptionStatus
    plan_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubscriptionDetails':
        return cls(
            subscription_id=str(_pick(
                data, "subscriptionId", "paypal_subscription_id", "id", default=""
            )),
            status=SubscriptionStatus.parse(_pick(data, "status")),
            plan_type=_pick(data, "planType", "plan_type", "plan"),
            start_date=_parse_datetime(_pick(data, "startDate", "start_date")),
            end_date=_parse_datetime(_pick(data, "endDate", "end_date")),
            next_billing_date=_parse_datetime(_pick(data, "nextBillingDate", "next_billing_date")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscriptionId": self.subscription_id,
            "status": self.status.value,
            "planType": self.plan_type,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "nextBillingDate": self.next_billing_date.isoformat() if self.next_billing_date else None,
        }


@dataclass(frozen=True)
class AdOutcome:
    """Result of showing a rewarded ad"""
    kind: AdOutcomeType
    amount: int = 0
    reason: Optional[str] = None

    @classmethod
    def earned(cls, amount: int) -> 'AdOutcome':
        return cls(AdOutcomeType.EARNED, amount=amount)

    @classmethod
    def canceled(cls) -> 'AdOutcome':
        return cls(AdOutcomeType.CANCELED)

    @classmethod
    def failed(cls, reason: str) -> 'AdOutcome':
        return cls(AdOutcomeType.FAILED, reason=reason)


@dataclass
class FeatureUnlock:
    """A feature paid for with reward units, valid until expires_at"""
    feature_name: str
    units_spent: int
    unlocked_at: datetime = field(default_factory=datetime.now)
    duration: timedelta = timedelta(hours=24)

    @property
    def expires_at(self) -> datetime:
        return self.unlocked_at + self.duration

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) < self.expires_at
