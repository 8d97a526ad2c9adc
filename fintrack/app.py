"""
FastAPI application for fintrack.

Lifespan manages config, cache, stores, and transaction service.
Routes: /v1/transactions, /v1/shares, /v1/admin/users, /v1/auth/login,
/v1/roles/{role}/permissions, /health.
Optional API key authentication on /v1/* endpoints; role-based permission checks
on transaction, sharing and user-management endpoints.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Request,
    Response,
    Security,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from fintrack.cache import TTLCache
from fintrack.config import AppConfig, load_config
from fintrack.models import (
    LoginRequest,
    RolePermissionsResponse,
    ShareCreate,
    SharedTransaction,
    SharesResponse,
    Transaction,
    TransactionCreate,
    TransactionListResponse,
    TransactionUpdate,
    User,
    UserCreate,
    UserUpdate,
)
from fintrack.roles import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    can_user_perform,
    has_any_permission,
)
from fintrack.sharing import ShareStore
from fintrack.store import TransactionStore
from fintrack.transactions import TransactionService
from fintrack.users import DuplicateEmailError, LastAdminError, UserStore

logger = logging.getLogger(__name__)

FRESH_CACHE_CONTROL = "public, max-age=60, s-maxage=120"
STALE_CACHE_CONTROL = "public, max-age=1, stale-while-revalidate=300"

# Global references set during lifespan
_service: Optional[TransactionService] = None
_shares: Optional[ShareStore] = None
_users: Optional[UserStore] = None
_config: Optional[AppConfig] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load config, create cache, stores, transaction service."""
    global _service, _shares, _users, _config

    # Configure logging
    log_level = os.environ.get("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _config = load_config()
    logger.info(
        "Loaded config: cache_ttl=%d, cache_stale_time=%d, seed_transactions=%s, seed_users=%s",
        _config.cache_ttl,
        _config.cache_stale_time,
        _config.seed_transactions,
        _config.seed_users,
    )

    _service = TransactionService(
        config=_config,
        store=TransactionStore(seed=_config.seed_transactions),
        cache=TTLCache(),
    )
    _shares = ShareStore(seed=_config.seed_transactions)
    _users = UserStore(seed=_config.seed_users)
    logger.info("Fintrack ready")
    yield

    _service = None
    _shares = None
    _users = None
    _config = None


app = FastAPI(
    title="Fintrack API",
    version="1.0.0",
    description="""
A personal-finance tracking API for income and expense transactions.

## Features

- **Cached listing**: the transaction list is served from an in-process cache
  with stale-while-revalidate semantics
- **Consistent writes**: creating, updating or deleting a transaction
  invalidates the cached list
- **Sharing**: grant other users read or edit access to a transaction
- **Roles**: `admin`, `user` and `viewer` roles gate what a caller may do;
  admins manage the user directory

## Authentication

Optional API key via `X-API-Key` header. The `/health` endpoint is always unauthenticated.
The caller's role is taken from the `X-User-Role` header and their id from `X-User-Id`.
    """.strip(),
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "transactions",
            "description": "Income and expense records",
        },
        {
            "name": "shares",
            "description": "Transactions shared between users",
        },
        {
            "name": "users",
            "description": "User directory administration and login",
        },
        {
            "name": "roles",
            "description": "Role permission lookup",
        },
        {
            "name": "health",
            "description": "Service health check",
        },
    ],
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 with a flat list of messages."""
    errors = []
    for error in exc.errors():
        # Drop the location kind ("body", "query", ...), keep the field path
        field = ".".join(str(part) for part in error["loc"][1:])
        errors.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(status_code=400, content={"errors": errors})


# ---------------------------------------------------------------------------
# Authentication / authorization dependencies
# ---------------------------------------------------------------------------

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> None:
    """Check API key if one is configured."""
    if _config is None or _config.api_key is None:
        return  # No auth configured
    if api_key != _config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def caller_role(x_user_role: Optional[str] = Header(default=None)) -> Role:
    """Resolve the caller's role from X-User-Role, else the configured default."""
    if x_user_role is None:
        return _config.default_role if _config is not None else Role.user
    try:
        return Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role '{x_user_role}'")


def require_permission(*permissions: Permission):
    """Dependency factory: reject callers whose role grants none of the permissions."""

    async def check(role: Role = Depends(caller_role)) -> Role:
        if not has_any_permission(role, permissions):
            wanted = " or ".join(f"'{p.value}'" for p in permissions)
            raise HTTPException(
                status_code=403,
                detail=f"Role '{role.value}' lacks permission {wanted}",
            )
        return role

    return check


def caller_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if x_user_id:
        return x_user_id
    return _config.default_user_id if _config is not None else "user-123"


def get_service() -> TransactionService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _service


def get_shares() -> ShareStore:
    if _shares is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _shares


def get_users() -> UserStore:
    if _users is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _users


async def refresh_transaction_list(service: TransactionService) -> None:
    """
    Background refresh after a stale read. Declared async so it runs on the
    event loop, never in a worker thread alongside request handlers.
    """
    service.refresh()


def _user_not_found(user_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"User '{user_id}' not found")


def _transaction_not_found(transaction_id: str) -> HTTPException:
    return HTTPException(
        status_code=404, detail=f"Transaction '{transaction_id}' not found"
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    tags=["health"],
    summary="Health check",
    response_description="Service is healthy",
)
async def health():
    """
    Health check endpoint for monitoring and container health checks.

    Always returns HTTP 200. No authentication required.
    """
    return {"status": "healthy"}


@app.get(
    "/v1/transactions",
    response_model=TransactionListResponse,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.read_transaction)),
    ],
    tags=["transactions"],
    summary="List transactions",
)
async def list_transactions(
    response: Response,
    background_tasks: BackgroundTasks,
    service: TransactionService = Depends(get_service),
):
    """
    Return all transactions, newest first.

    `from_cache` tells whether the list came from the cache. When `is_stale`
    is true the cached list is served immediately and a refresh runs after the
    response is sent.
    """
    result = service.list_transactions()
    if result.is_stale:
        background_tasks.add_task(refresh_transaction_list, service)
        response.headers["Cache-Control"] = STALE_CACHE_CONTROL
    else:
        response.headers["Cache-Control"] = FRESH_CACHE_CONTROL
    return result


@app.get(
    "/v1/transactions/{transaction_id}",
    response_model=Transaction,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.read_transaction)),
    ],
    tags=["transactions"],
    summary="Get one transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def get_transaction(
    transaction_id: str, service: TransactionService = Depends(get_service)
):
    transaction = service.get_transaction(transaction_id)
    if transaction is None:
        raise _transaction_not_found(transaction_id)
    return transaction


@app.post(
    "/v1/transactions",
    response_model=Transaction,
    status_code=201,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.create_transaction)),
    ],
    tags=["transactions"],
    summary="Create a transaction",
    responses={400: {"description": "Invalid transaction body"}},
)
async def create_transaction(
    payload: TransactionCreate,
    user_id: str = Depends(caller_id),
    service: TransactionService = Depends(get_service),
):
    """
    Record a new income or expense. Invalidates the cached transaction list.

    The owner is taken from `X-User-Id`, falling back to the configured default user.
    The body's `date` is validated, but the stored date is the server time.
    """
    transaction = service.create_transaction(payload, user_id=user_id)
    logger.info("Created transaction %s", transaction.id)
    return transaction


@app.put(
    "/v1/transactions/{transaction_id}",
    response_model=Transaction,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.update_transaction)),
    ],
    tags=["transactions"],
    summary="Update a transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def update_transaction(
    transaction_id: str,
    changes: TransactionUpdate,
    service: TransactionService = Depends(get_service),
):
    """
    Apply a partial update. Omitted fields are kept; explicit nulls are rejected.
    Invalidates the cached transaction list when anything changed.
    """
    transaction = service.update_transaction(transaction_id, changes)
    if transaction is None:
        raise _transaction_not_found(transaction_id)
    return transaction


@app.delete(
    "/v1/transactions/{transaction_id}",
    status_code=204,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.delete_transaction)),
    ],
    tags=["transactions"],
    summary="Delete a transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def delete_transaction(
    transaction_id: str, service: TransactionService = Depends(get_service)
):
    """Remove a transaction. Invalidates the cached transaction list."""
    if not service.delete_transaction(transaction_id):
        raise _transaction_not_found(transaction_id)
    logger.info("Deleted transaction %s", transaction_id)
    return Response(status_code=204)


@app.get(
    "/v1/shares",
    response_model=SharesResponse,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.read_transaction)),
    ],
    tags=["shares"],
    summary="List shares for a user",
)
async def list_shares(user_id: str, shares: ShareStore = Depends(get_shares)):
    """Transactions shared with `user_id` and those `user_id` has shared with others."""
    return SharesResponse(
        shared_with_user=shares.shared_with(user_id),
        shared_by_user=shares.shared_by(user_id),
    )


@app.post(
    "/v1/shares",
    response_model=SharedTransaction,
    status_code=201,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.share_transaction)),
    ],
    tags=["shares"],
    summary="Share a transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def create_share(
    payload: ShareCreate,
    user_id: str = Depends(caller_id),
    service: TransactionService = Depends(get_service),
    shares: ShareStore = Depends(get_shares),
):
    """Grant `read` or `edit` access on a transaction to another user."""
    if service.get_transaction(payload.transaction_id) is None:
        raise _transaction_not_found(payload.transaction_id)
    share = shares.share(payload, user_id=user_id)
    logger.info(
        "Shared transaction %s with %s (%s)",
        share.transaction_id,
        share.shared_with,
        share.permission.value,
    )
    return share


@app.delete(
    "/v1/shares",
    status_code=204,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.share_transaction)),
    ],
    tags=["shares"],
    summary="Revoke a share",
)
async def revoke_share(
    transaction_id: str, shared_with: str, shares: ShareStore = Depends(get_shares)
):
    """Revoke access. Revoking a share that does not exist is not an error."""
    shares.revoke(transaction_id, shared_with)
    return Response(status_code=204)


@app.post(
    "/v1/auth/login",
    response_model=User,
    dependencies=[Depends(verify_api_key)],
    tags=["users"],
    summary="Check credentials",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(payload: LoginRequest, users: UserStore = Depends(get_users)):
    """Return the user (without password) matching the email and password."""
    user = users.authenticate(payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


@app.get(
    "/v1/admin/users",
    response_model=list[User],
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.manage_users, Permission.manage_roles)),
    ],
    tags=["users"],
    summary="List users",
)
async def list_users(users: UserStore = Depends(get_users)):
    return users.list()


@app.get(
    "/v1/admin/users/{user_id}",
    response_model=User,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.manage_users, Permission.manage_roles)),
    ],
    tags=["users"],
    summary="Get one user",
    responses={404: {"description": "User not found"}},
)
async def get_user(user_id: str, users: UserStore = Depends(get_users)):
    user = users.get(user_id)
    if user is None:
        raise _user_not_found(user_id)
    return user


@app.post(
    "/v1/admin/users",
    response_model=User,
    status_code=201,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.manage_users)),
    ],
    tags=["users"],
    summary="Create a user",
    responses={409: {"description": "Email already registered"}},
)
async def create_user(payload: UserCreate, users: UserStore = Depends(get_users)):
    try:
        return users.create(payload)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@app.put(
    "/v1/admin/users/{user_id}",
    response_model=User,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.manage_users)),
    ],
    tags=["users"],
    summary="Update a user",
    responses={
        403: {"description": "Role change not permitted or would remove the last admin"},
        404: {"description": "User not found"},
        409: {"description": "Email already in use"},
    },
)
async def update_user(
    user_id: str,
    changes: UserUpdate,
    role: Role = Depends(caller_role),
    users: UserStore = Depends(get_users),
):
    """Partial update. Changing `role` also requires `manage:roles`."""
    if "role" in changes.model_fields_set and not can_user_perform(
        role, Permission.manage_roles
    ):
        raise HTTPException(
            status_code=403,
            detail=f"Role '{role.value}' lacks permission 'manage:roles'",
        )
    try:
        user = users.update(user_id, changes)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except LastAdminError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    if user is None:
        raise _user_not_found(user_id)
    return user


@app.delete(
    "/v1/admin/users/{user_id}",
    status_code=204,
    dependencies=[
        Depends(verify_api_key),
        Depends(require_permission(Permission.manage_users)),
    ],
    tags=["users"],
    summary="Delete a user",
    responses={
        403: {"description": "Would remove the last admin"},
        404: {"description": "User not found"},
    },
)
async def delete_user(user_id: str, users: UserStore = Depends(get_users)):
    try:
        deleted = users.delete(user_id)
    except LastAdminError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    if not deleted:
        raise _user_not_found(user_id)
    return Response(status_code=204)


@app.get(
    "/v1/roles/{role}/permissions",
    response_model=RolePermissionsResponse,
    dependencies=[Depends(verify_api_key)],
    tags=["roles"],
    summary="List a role's permissions",
    responses={404: {"description": "Unknown role"}},
)
async def get_role_permissions(role: str):
    try:
        resolved = Role(role)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Role '{role}' not found")
    return RolePermissionsResponse(
        role=resolved, permissions=list(ROLE_PERMISSIONS[resolved])
    )
