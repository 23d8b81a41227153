"""
Certificate and user message persistence. All operations are sync and commit
themselves (used from sync endpoints and CLI commands).
"""
from datetime import datetime, timezone

from sqlalchemy import desc
from sqlalchemy.orm import Session

from vpn_server_api.models.certificate import Certificate
from vpn_server_api.models.user_message import UserMessage


def to_db_datetime(value: datetime) -> datetime:
    """Columns hold naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_datetime(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def add_certificate(
    db: Session,
    user_id: str,
    common_name: str,
    display_name: str,
    valid_from: datetime,
    valid_to: datetime,
    client_id: str | None = None,
) -> Certificate:
    cert = Certificate(
        user_id=user_id,
        common_name=common_name,
        display_name=display_name,
        valid_from=to_db_datetime(valid_from),
        valid_to=to_db_datetime(valid_to),
        client_id=client_id,
    )
    db.add(cert)
    db.commit()
    db.refresh(cert)
    return cert


def get_certificate(db: Session, common_name: str) -> Certificate | None:
    return db.query(Certificate).filter(Certificate.common_name == common_name).first()


def get_certificates(db: Session, user_id: str) -> list[Certificate]:
    return (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id, Certificate.is_revoked.is_(False))
        .order_by(Certificate.valid_from)
        .all()
    )


def revoke_certificate(db: Session, common_name: str) -> bool:
    """False if there is no such (unrevoked) certificate."""
    cert = get_certificate(db, common_name)
    if cert is None or cert.is_revoked:
        return False
    cert.is_revoked = True
    db.commit()
    return True


def revoke_certificates_of_client_id(db: Session, user_id: str, client_id: str) -> list[str]:
    """Revoke all certificates a user obtained through an OAuth client; returns their common names."""
    certs = (
        db.query(Certificate)
        .filter(
            Certificate.user_id == user_id,
            Certificate.client_id == client_id,
            Certificate.is_revoked.is_(False),
        )
        .all()
    )
    for cert in certs:
        cert.is_revoked = True
    db.commit()
    return [c.common_name for c in certs]


def add_user_message(db: Session, user_id: str, message: str, type_: str = "notification") -> UserMessage:
    msg = UserMessage(user_id=user_id, type=type_, message=message)
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


def get_user_messages(db: Session, user_id: str) -> list[UserMessage]:
    return (
        db.query(UserMessage)
        .filter(UserMessage.user_id == user_id)
        .order_by(desc(UserMessage.created_at), desc(UserMessage.id))
        .all()
    )
