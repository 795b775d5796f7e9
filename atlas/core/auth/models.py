"""ATLAS Auth Models.

User model for Flask-Login. It is the caller identity the approval engine
authorizes against: id, role name, hierarchy level, division, permissions.
"""
from flask_login import UserMixin

from core.roles.hierarchy import UNKNOWN_ROLE_LEVEL


class User(UserMixin):
    """User class for Flask-Login."""

    def __init__(self, user_data):
        self.id = user_data['id']
        self.email = user_data.get('email')
        self.full_name = user_data.get('full_name')
        self.role_id = user_data.get('role_id')
        self.role_name = user_data.get('role_name') or ''
        level = user_data.get('hierarchy_level')
        self.hierarchy_level = int(level) if level is not None else UNKNOWN_ROLE_LEVEL
        self.division_id = user_data.get('division_id')
        self.status = user_data.get('status', 'active')
        self.permissions = list(user_data.get('permissions') or [])

    @property
    def is_active(self):
        return self.status == 'active'

    def has_permission(self, permission: str) -> bool:
        """Check a permission string such as 'user:read:any'."""
        return permission in self.permissions

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role_id': self.role_id,
            'role_name': self.role_name,
            'hierarchy_level': self.hierarchy_level,
            'division_id': self.division_id,
            'permissions': self.permissions,
        }
