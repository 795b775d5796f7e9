"""Employee Repository - the employee record store.

Handles reads and the status/role/division commands issued by the
approval engine. Write methods take an optional cursor so they can run
inside the transaction that finalizes a request.
"""
import json
import logging
from typing import Optional, Dict, Any

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.hr.employees.employee_repository')

_EMPLOYEE_SELECT = '''
    SELECT u.id, u.email, u.full_name, u.phone, u.role_id, u.division_id, u.status,
           u.hire_date, u.termination_date, u.created_at, u.updated_at,
           r.name as role_name, r.hierarchy_level,
           d.name as division_name
    FROM users u
    LEFT JOIN roles r ON r.id = u.role_id
    LEFT JOIN divisions d ON d.id = u.division_id
'''


class EmployeeRepository(BaseRepository):
    """Repository for employee records (users table)."""

    def get_by_id(self, user_id, cursor=None) -> Optional[Dict[str, Any]]:
        return self.query_one(_EMPLOYEE_SELECT + ' WHERE u.id = %s', (user_id,), cursor=cursor)

    def get_by_email(self, email: str, cursor=None) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        return self.query_one(_EMPLOYEE_SELECT + ' WHERE u.email = %s',
                              (email.strip().lower(),), cursor=cursor)

    def get_first_active_with_role(self, role_name: str) -> Optional[Dict[str, Any]]:
        """First active holder of a role, by id. Only one holder is ever used."""
        return self.query_one(_EMPLOYEE_SELECT + '''
            WHERE r.name = %s AND u.status = 'active'
            ORDER BY u.id
            LIMIT 1
        ''', (role_name,))

    def update_role(self, user_id, role_id, cursor=None) -> bool:
        return self.execute('''
            UPDATE users SET role_id = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (role_id, user_id), cursor=cursor) > 0

    def update_division(self, user_id, division_id, cursor=None) -> bool:
        return self.execute('''
            UPDATE users SET division_id = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (division_id, user_id), cursor=cursor) > 0

    def terminate(self, user_id, termination_date, cursor=None) -> bool:
        return self.execute('''
            UPDATE users SET status = 'terminated', termination_date = %s,
                   updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (termination_date, user_id), cursor=cursor) > 0

    def reactivate(self, user_id, role_id, division_id, cursor=None) -> bool:
        """Re-activate an existing account with a new role and division."""
        return self.execute('''
            UPDATE users SET status = 'active', role_id = %s, division_id = %s,
                   termination_date = NULL, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (role_id, division_id, user_id), cursor=cursor) > 0

    def create_from_setup(self, email, full_name, password_hash, role_id, division_id,
                          hire_date, phone=None, date_of_birth=None, national_id=None,
                          address=None, emergency_contact_name=None,
                          emergency_contact_phone=None, emergency_contact_relation=None,
                          cursor=None) -> int:
        """Create an active account from a completed setup form. Returns user id."""
        row = self.execute('''
            INSERT INTO users
                (email, full_name, password, phone, role_id, division_id, status, hire_date,
                 date_of_birth, national_id, address,
                 emergency_contact_name, emergency_contact_phone, emergency_contact_relation)
            VALUES (%s, %s, %s, %s, %s, %s, 'active', %s, %s, %s, %s::jsonb, %s, %s, %s)
            RETURNING id
        ''', (
            email.strip().lower(), full_name, password_hash, phone, role_id, division_id,
            hire_date, date_of_birth, national_id, json.dumps(address or {}),
            emergency_contact_name, emergency_contact_phone, emergency_contact_relation,
        ), returning=True, cursor=cursor)
        return row['id']
