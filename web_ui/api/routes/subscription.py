"""
Subscription Routes - API endpoints for premium subscription management

The front-end passes the subscription id from the PayPal approval callback
to /upgrade; the server verifies it before premium is shown.
"""

from fastapi import APIRouter, Depends

from account import AccountContext
from web_ui.api.middleware.auth import get_account_context, raise_for_result
from web_ui.api.schemas.account_schemas import ActionResponse, UpgradeRequest

router = APIRouter()


@router.post("/upgrade", response_model=ActionResponse)
async def upgrade(request: UpgradeRequest, context: AccountContext = Depends(get_account_context)):
    result = await context.subscription.upgrade(request.subscription_id)
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/cancel", response_model=ActionResponse)
async def cancel(context: AccountContext = Depends(get_account_context)):
    result = await context.subscription.cancel()
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/refresh", response_model=ActionResponse)
async def refresh(context: AccountContext = Depends(get_account_context)):
    result = await context.subscription.refresh()
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message or "Subscription refreshed", account=context.snapshot())
