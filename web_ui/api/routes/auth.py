"""
Authentication Routes for the Realty Desk Web API

Login, registration, logout and password reset, backed by the identity store.
"""

from fastapi import APIRouter, Depends

from account import AccountContext
from web_ui.api.middleware.auth import get_account_context, raise_for_result
from web_ui.api.schemas.account_schemas import (
    ActionResponse,
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
)

router = APIRouter()


@router.post("/login", response_model=ActionResponse)
async def login(request: LoginRequest, context: AccountContext = Depends(get_account_context)):
    result = await context.identity.login(
        email=request.email,
        password=request.password,
        remember_me=request.remember_me,
    )
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/register", response_model=ActionResponse)
async def register(request: RegisterRequest, context: AccountContext = Depends(get_account_context)):
    result = await context.identity.register(
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        username=request.username,
    )
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/logout", response_model=ActionResponse)
async def logout(context: AccountContext = Depends(get_account_context)):
    result = await context.identity.logout()
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/forgot-password", response_model=ActionResponse)
async def forgot_password(
    request: PasswordResetRequest,
    context: AccountContext = Depends(get_account_context),
):
    result = await context.identity.request_password_reset(request.email)
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())


@router.post("/resend-verification", response_model=ActionResponse)
async def resend_verification(context: AccountContext = Depends(get_account_context)):
    result = await context.identity.resend_verification()
    raise_for_result(result)
    return ActionResponse(success=True, message=result.message, account=context.snapshot())
