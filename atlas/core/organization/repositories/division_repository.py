"""Division repository.

A division carries a manager (approver for "Manager" workflow steps)
and an active general.
"""

import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.core.organization.division_repository')


class DivisionRepository(BaseRepository):

    def get(self, division_id, cursor=None):
        return self.query_one('''
            SELECT d.*, m.full_name as manager_name, m.email as manager_email
            FROM divisions d
            LEFT JOIN users m ON m.id = d.manager_id
            WHERE d.id = %s
        ''', (division_id,), cursor=cursor)

    def get_manager(self, division_id):
        """Active user managing the division, or None."""
        if not division_id:
            return None
        return self.query_one('''
            SELECT u.id, u.full_name, u.email, u.status
            FROM divisions d
            JOIN users u ON u.id = d.manager_id
            WHERE d.id = %s AND u.status = 'active'
        ''', (division_id,))

    def is_manager(self, user_id) -> bool:
        """True if the user manages any division."""
        row = self.query_one(
            'SELECT 1 AS managed FROM divisions WHERE manager_id = %s LIMIT 1',
            (user_id,))
        return row is not None
