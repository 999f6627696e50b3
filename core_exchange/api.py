"""
FastAPI REST API Module

Thin HTTP adapter over ExchangeService. Every route answers with the
response envelope {status, text, message, kind?, data?} and an HTTP status
equal to the envelope's status. Authentication and registration belong to
the account-management layer in front of this service.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from . import __version__
from .config import get_config
from .errors import InvalidRequest
from .logging_config import correlation_scope, get_logger, setup_logging
from .service import ExchangeService, OperationResult


CORRELATION_HEADER = "X-Correlation-ID"


class ProposeTransactionRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    currency: str = Field(..., description="Currency code the sender is debited in (USD, RUB)")
    amount: Union[str, int, Decimal] = Field(
        ..., description="Amount as a decimal string or JSON number"
    )


class ReceiveTransactionRequest(BaseModel):
    receiver_id: int


def envelope(result: OperationResult) -> JSONResponse:
    return JSONResponse(status_code=result.http_status, content=result.to_dict())


# Dependency to get the exchange service
def get_service(request: Request) -> ExchangeService:
    return request.app.state.service


def create_app(service: Optional[ExchangeService] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Core Exchange API",
        description="Peer-to-peer currency exchange ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.service = service or ExchangeService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with correlation_scope(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return envelope(OperationResult.failure(InvalidRequest(f"Invalid request: {errors}")))

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    async def root():
        """Get API information"""
        return {
            "name": "Core Exchange API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "accounts": "/accounts",
                "transactions": "/transactions"
            }
        }

    @app.post("/accounts", status_code=status.HTTP_201_CREATED)
    async def create_account(svc: ExchangeService = Depends(get_service)):
        """Create an account with the starting balances"""
        return envelope(svc.create_account())

    @app.get("/accounts/{account_id}")
    async def get_account_info(account_id: int, svc: ExchangeService = Depends(get_service)):
        """Get account balances, flags and transaction count"""
        return envelope(svc.get_account_info(account_id))

    @app.get("/accounts/{account_id}/transactions")
    async def get_account_transactions(
        account_id: int,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        svc: ExchangeService = Depends(get_service)
    ):
        """Get account transactions, most recent first"""
        return envelope(svc.get_account_transactions(account_id, status=status, limit=limit))

    @app.post("/transactions")
    async def propose_transaction(
        request: ProposeTransactionRequest,
        svc: ExchangeService = Depends(get_service)
    ):
        """Propose a transfer; the recipient must accept it"""
        return envelope(svc.propose(
            request.from_account_id, request.to_account_id, request.currency, request.amount
        ))

    @app.get("/transactions/{transaction_id}")
    async def get_transaction(transaction_id: int, svc: ExchangeService = Depends(get_service)):
        """Get a transaction by id"""
        return envelope(svc.get_transaction(transaction_id))

    @app.post("/transactions/{transaction_id}/accept")
    async def accept_transaction(
        transaction_id: int,
        request: ReceiveTransactionRequest,
        svc: ExchangeService = Depends(get_service)
    ):
        """Accept a pending transaction and settle it"""
        return envelope(svc.receive(transaction_id, request.receiver_id, accept=True))

    @app.post("/transactions/{transaction_id}/reject")
    async def reject_transaction(
        transaction_id: int,
        request: ReceiveTransactionRequest,
        svc: ExchangeService = Depends(get_service)
    ):
        """Reject a pending transaction"""
        return envelope(svc.receive(transaction_id, request.receiver_id, accept=False))

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API server"""
    config = get_config()
    setup_logging(config.log_level, "exchange", config.log_format)
    get_logger("exchange.api").info("Starting Core Exchange API")
    uvicorn.run(
        create_app(),
        host=host or config.api_host,
        port=port or config.api_port,
        log_level=config.log_level.lower()
    )
