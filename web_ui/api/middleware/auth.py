"""
Account Dependencies for the Realty Desk Web API

Hands the per-process AccountContext to route handlers and turns failed
OperationResults into HTTP errors.
"""

from fastapi import HTTPException, Request, status

from account import AccountContext, ErrorKind, OperationResult


ERROR_STATUS = {
    ErrorKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.NO_ACTIVE_SUBSCRIPTION: status.HTTP_404_NOT_FOUND,
    ErrorKind.OPERATION_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ErrorKind.NETWORK_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.AD_LOAD_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_account_context(request: Request) -> AccountContext:
    """FastAPI dependency: the account context built at startup"""
    context = getattr(request.app.state, "account", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": "Account services are not ready"},
        )
    return context


def require_authenticated(request: Request) -> AccountContext:
    """FastAPI dependency: like get_account_context, but 401 when logged out"""
    context = get_account_context(request)
    if not context.identity.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "error": ErrorKind.NOT_AUTHENTICATED.value},
        )
    return context


def raise_for_result(result: OperationResult) -> None:
    """Raise the matching HTTPException for a failed result"""
    if result.ok:
        return
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
        detail=result.to_dict(),
    )
