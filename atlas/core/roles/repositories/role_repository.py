"""Role repository.

Read access to the roles table (name, hierarchy_level, permissions).
"""

import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.core.roles.role_repository')


class RoleRepository(BaseRepository):

    def get(self, role_id, cursor=None) -> dict | None:
        """Get a specific role by ID."""
        return self.query_one('SELECT * FROM roles WHERE id = %s', (role_id,), cursor=cursor)

    def get_by_name(self, name: str) -> dict | None:
        return self.query_one('SELECT * FROM roles WHERE name = %s', (name,))

    def resolve(self, ref) -> dict | None:
        """Look a role up by numeric id or by name."""
        if ref is None or ref == '':
            return None
        if isinstance(ref, int) or (isinstance(ref, str) and ref.strip().isdigit()):
            return self.get(int(ref))
        return self.get_by_name(str(ref).strip())
