from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from vpn_server_api.auth import ADMIN_PORTAL, USER_PORTAL, require_consumer
from vpn_server_api.database import get_db
from vpn_server_api.repositories.certificate_repository import get_user_messages
from vpn_server_api.schemas.certificate import UserMessageResponse

router = APIRouter(prefix="/api/user_messages", tags=["user_messages"])


@router.get("", response_model=list[UserMessageResponse])
def list_user_messages(
    user_id: str,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL, USER_PORTAL)),
    db: Session = Depends(get_db),
):
    """Notifications for a user, newest first."""
    return get_user_messages(db, user_id)
