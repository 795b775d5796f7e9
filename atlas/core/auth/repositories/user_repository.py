"""User Repository - Data access for authentication.

Loads users together with their role so the identity carries the
role name, hierarchy level and permissions.
"""
from typing import Optional, Dict, Any

from werkzeug.security import check_password_hash

from core.base_repository import BaseRepository

_USER_SELECT = '''
    SELECT u.id, u.email, u.full_name, u.password, u.role_id, u.division_id, u.status,
           r.name as role_name, r.hierarchy_level, r.permissions
    FROM users u
    LEFT JOIN roles r ON r.id = u.role_id
'''


class UserRepository(BaseRepository):
    """Repository for login/session lookups."""

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        user = self.query_one(_USER_SELECT + ' WHERE u.id = %s', (user_id,))
        if user:
            user.pop('password', None)
        return user

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the user dict if credentials match an active account."""
        user = self.query_one(_USER_SELECT + ' WHERE u.email = %s', (email.strip().lower(),))
        if not user or user.get('status') != 'active' or not user.get('password'):
            return None
        if not check_password_hash(user['password'], password):
            return None
        user.pop('password', None)
        return user
