"""Repository for employee_history table. Append-only."""

import logging
from datetime import datetime, timezone

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.hr.history.history_repository')

EVENT_TYPES = (
    'hired', 'promotion', 'demotion', 'transfer', 'salary_change',
    'resignation', 'terminated', 'status_change', 'role_change',
)


class EmployeeHistoryRepository(BaseRepository):

    def record(self, event_type, old, new, actor_id, user_id, effective_date=None,
               reason='', notes='', cursor=None):
        """Append a history entry. Returns its id.

        Args:
            event_type: One of EVENT_TYPES
            old: Previous values (role_id, division_id, salary, status)
            new: New values, same keys
            actor_id: User credited with the change
            user_id: Employee the entry belongs to
        """
        if not user_id:
            raise ValueError('user_id is required')
        if event_type not in EVENT_TYPES:
            raise ValueError(f'Unknown history event type: {event_type}')
        old = old or {}
        new = new or {}

        row = self.execute('''
            INSERT INTO employee_history
                (user_id, event_type, old_role, new_role, old_division, new_division,
                 old_salary, new_salary, old_status, new_status,
                 effective_date, reason, notes, created_by)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        ''', (
            user_id, event_type,
            old.get('role_id'), new.get('role_id'),
            old.get('division_id'), new.get('division_id'),
            old.get('salary'), new.get('salary'),
            old.get('status'), new.get('status'),
            effective_date or datetime.now(timezone.utc),
            reason or '', notes or '', actor_id,
        ), returning=True, cursor=cursor)
        return row['id']

    def get_for_user(self, user_id, limit=50, offset=0, event_type=None):
        """History for an employee, newest first, with total for pagination."""
        where = 'WHERE h.user_id = %s'
        params = [user_id]
        if event_type:
            where += ' AND h.event_type = %s'
            params.append(event_type)

        rows = self.query_all(f'''
            SELECT h.*,
                   ro.name as old_role_name, rn.name as new_role_name,
                   dold.name as old_division_name, dnew.name as new_division_name,
                   c.full_name as created_by_name
            FROM employee_history h
            LEFT JOIN roles ro ON ro.id = h.old_role
            LEFT JOIN roles rn ON rn.id = h.new_role
            LEFT JOIN divisions dold ON dold.id = h.old_division
            LEFT JOIN divisions dnew ON dnew.id = h.new_division
            LEFT JOIN users c ON c.id = h.created_by
            {where}
            ORDER BY h.effective_date DESC, h.created_at DESC
            LIMIT %s OFFSET %s
        ''', params + [limit, offset])
        total = self.query_one(
            f'SELECT COUNT(*) as cnt FROM employee_history h {where}', params)
        return {'history': rows, 'total': total['cnt'] if total else 0}
