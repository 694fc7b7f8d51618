from models.user import User
from models.session import UserSession

__all__ = ["User", "UserSession"]
