"""
Users module - Account storage for administrators and students.
"""

from app.modules.users.models import Gender, User, UserRole
from app.modules.users.repository import UserRepository

__all__ = ["Gender", "User", "UserRole", "UserRepository"]
