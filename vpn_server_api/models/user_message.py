"""Notifications shown to a user in the portal (certificate created/deleted, ...)."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime
from vpn_server_api.database import Base


class UserMessage(Base):
    __tablename__ = "user_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(32), nullable=False, default="notification")
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
