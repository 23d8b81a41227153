import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from vpn_server_api.database import Base


class Certificate(Base):
    """Client certificate issued by the CA. common_name joins it to live VPN sessions."""
    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    common_name = Column(String(64), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False, default="")
    valid_from = Column(DateTime, nullable=False)  # UTC
    valid_to = Column(DateTime, nullable=False)  # UTC
    client_id = Column(String(255), nullable=True, default=None)  # OAuth client that requested it
    is_revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
