"""
User persistence. A user row appears the first time the portals mention the
user (certificate issued, authentication ping, disable/enable).
"""
import json
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from vpn_server_api.models.certificate import Certificate
from vpn_server_api.models.user import User
from vpn_server_api.models.user_message import UserMessage
from vpn_server_api.repositories.certificate_repository import to_db_datetime


def get_user(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.user_id == user_id).first()


def get_or_create_user(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    if user is None:
        user = User(user_id=user_id)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def get_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.user_id).all()


def is_disabled_user(db: Session, user_id: str) -> bool:
    """Unknown users are not disabled."""
    user = get_user(db, user_id)
    return user is not None and user.is_disabled


def set_disabled(db: Session, user_id: str, is_disabled: bool) -> User:
    user = get_or_create_user(db, user_id)
    user.is_disabled = is_disabled
    db.commit()
    return user


def delete_user(db: Session, user_id: str) -> bool:
    """
    Remove the user together with their certificates and messages. Sessions
    using the deleted certificates are disconnected by the next
    disconnect-expired run. False if the user was not known.
    """
    user = get_user(db, user_id)
    certificates = db.query(Certificate).filter(Certificate.user_id == user_id)
    if user is None and certificates.first() is None:
        return False
    certificates.delete(synchronize_session=False)
    db.query(UserMessage).filter(UserMessage.user_id == user_id).delete(synchronize_session=False)
    if user is not None:
        db.delete(user)
    db.commit()
    return True


def last_authenticated_at_ping(
    db: Session, user_id: str, entitlement_list: list[str], now: datetime | None = None
) -> User:
    user = get_or_create_user(db, user_id)
    user.last_authenticated_at = to_db_datetime(now or datetime.now(timezone.utc))
    user.entitlement_list = json.dumps(entitlement_list)
    db.commit()
    db.refresh(user)
    return user


def get_entitlement_list(user: User | None) -> list[str]:
    if user is None:
        return []
    return json.loads(user.entitlement_list or "[]")
