from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from vpn_server_api.auth import ADMIN_PORTAL, USER_PORTAL, require_consumer
from vpn_server_api.database import get_db
from vpn_server_api.models.user import User
from vpn_server_api.repositories import user_repository as users
from vpn_server_api.repositories.certificate_repository import add_user_message, from_db_datetime
from vpn_server_api.schemas.user import (
    EntitlementListResponse,
    IsDisabledUserResponse,
    LastAuthenticatedAtPingRequest,
    LastAuthenticatedAtResponse,
    UserIdRequest,
    UserResponse,
)

router = APIRouter(prefix="/api/users", tags=["users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        is_disabled=user.is_disabled,
        last_authenticated_at=from_db_datetime(user.last_authenticated_at) if user.last_authenticated_at else None,
        created_at=from_db_datetime(user.created_at),
    )


@router.get("/user_list", response_model=list[UserResponse])
def user_list(
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    return [_user_response(u) for u in users.get_users(db)]


@router.get("/is_disabled_user", response_model=IsDisabledUserResponse)
def is_disabled_user(
    user_id: str,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL, USER_PORTAL)),
    db: Session = Depends(get_db),
):
    return IsDisabledUserResponse(user_id=user_id, is_disabled=users.is_disabled_user(db, user_id))


@router.post("/disable_user", response_model=UserResponse)
def disable_user(
    body: UserIdRequest,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    """Mark the account disabled. Existing sessions are not touched; the admin portal kills them."""
    user = users.set_disabled(db, body.user_id, True)
    add_user_message(db, body.user_id, "account disabled")
    return _user_response(user)


@router.post("/enable_user", response_model=UserResponse)
def enable_user(
    body: UserIdRequest,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    user = users.set_disabled(db, body.user_id, False)
    add_user_message(db, body.user_id, "account (re)enabled")
    return _user_response(user)


@router.post("/delete_user")
def delete_user(
    body: UserIdRequest,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    """Delete the user with all of their certificates and messages."""
    if not users.delete_user(db, body.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"message": "User deleted"}


@router.post("/last_authenticated_at_ping", response_model=LastAuthenticatedAtResponse)
def last_authenticated_at_ping(
    body: LastAuthenticatedAtPingRequest,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    db: Session = Depends(get_db),
):
    """Called by the user portal after every successful login."""
    user = users.last_authenticated_at_ping(db, body.user_id, body.entitlement_list)
    return LastAuthenticatedAtResponse(
        user_id=user.user_id, last_authenticated_at=from_db_datetime(user.last_authenticated_at)
    )


@router.get("/user_last_authenticated_at", response_model=LastAuthenticatedAtResponse)
def user_last_authenticated_at(
    user_id: str,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    db: Session = Depends(get_db),
):
    user = users.get_user(db, user_id)
    last = user.last_authenticated_at if user is not None else None
    return LastAuthenticatedAtResponse(user_id=user_id, last_authenticated_at=from_db_datetime(last) if last else None)


@router.get("/user_entitlement_list", response_model=EntitlementListResponse)
def user_entitlement_list(
    user_id: str,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    db: Session = Depends(get_db),
):
    """Entitlements reported by the last authentication ping."""
    return EntitlementListResponse(
        user_id=user_id, entitlement_list=users.get_entitlement_list(users.get_user(db, user_id))
    )
