"""Portal users known to the server. Created on first certificate or authentication."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Text
from vpn_server_api.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(255), primary_key=True)
    is_disabled = Column(Boolean, nullable=False, default=False)
    last_authenticated_at = Column(DateTime, nullable=True, default=None)  # UTC
    entitlement_list = Column(Text, nullable=False, default="[]")  # JSON array
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
