"""Domain errors raised by the wallet operations and their HTTP mapping."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class WalletError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WalletError):
    """Missing or malformed input; the caller corrects it and resubmits."""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCredentialsError(WalletError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(WalletError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(WalletError):
    """Phone already registered, or an order/withdrawal is no longer Pending."""
    status_code = status.HTTP_409_CONFLICT


class StoreError(WalletError):
    """The database call itself failed. Surfaced as-is, never retried here."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WalletError, _wallet_error_handler)
