"""Account status route - everything the UI needs in one call"""

from fastapi import APIRouter, Depends

from account import AccountContext
from web_ui.api.middleware.auth import get_account_context

router = APIRouter()


@router.get("/status")
async def get_account_status(context: AccountContext = Depends(get_account_context)):
    return context.snapshot()
