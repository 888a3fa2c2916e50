"""
Reward Unit Routes

Watching ads to earn units, spending units on gated features, and checking
feature access.
"""

from fastapi import APIRouter, Depends

from account import AccountContext
from web_ui.api.middleware.auth import (
    get_account_context,
    raise_for_result,
    require_authenticated,
)
from web_ui.api.schemas.account_schemas import ActionResponse, FeatureAccessResponse, SpendRequest

router = APIRouter()


@router.post("/watch-ad", response_model=ActionResponse)
async def watch_ad(context: AccountContext = Depends(get_account_context)):
    """Play a rewarded ad and credit the reward"""
    result = await context.rewards.watch_ad()
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/spend", response_model=ActionResponse)
async def spend(request: SpendRequest, context: AccountContext = Depends(get_account_context)):
    """Spend reward units to unlock a feature temporarily"""
    result = await context.rewards.spend(request.amount, request.feature_name)
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.get("/access/{feature_name}", response_model=FeatureAccessResponse)
async def check_feature_access(
    feature_name: str,
    context: AccountContext = Depends(require_authenticated),
):
    allowed, reason = context.feature_gate.check_access(feature_name, balance=context.rewards.balance)
    return FeatureAccessResponse(
        feature_name=feature_name,
        has_access=allowed,
        cost=context.feature_gate.cost_for(feature_name),
        reason=reason,
    )
