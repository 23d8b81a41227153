from vpn_server_api.models.certificate import Certificate
from vpn_server_api.models.user import User
from vpn_server_api.models.user_message import UserMessage

__all__ = ["Certificate", "User", "UserMessage"]
