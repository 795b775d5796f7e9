"""Repository for approvals table: the per-request ledger of approval steps.

Status changes are conditional on the step still being pending, so a
concurrent second decision updates nothing and the caller can tell.
"""

import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.core.approvals.step_repo')

_STEP_SELECT = '''
    SELECT a.id, a.request_type, a.request_id, a.approval_level, a.approver_id,
           a.status, a.comments, a.processed_at, a.user_id, a.created_at,
           u.full_name as approver_name, u.email as approver_email,
           ro.name as approver_role
    FROM approvals a
    LEFT JOIN users u ON u.id = a.approver_id
    LEFT JOIN roles ro ON ro.id = u.role_id
'''


class StepRepository(BaseRepository):

    def create_many(self, request_type, request_id, chain, user_id=None, cursor=None):
        """Insert the resolved chain, every step pending. Returns the rows in level order."""
        rows = []
        for step in chain:
            rows.append(self.execute('''
                INSERT INTO approvals
                    (request_type, request_id, approval_level, approver_id, status, user_id)
                VALUES (%s, %s, %s, %s, 'pending', %s)
                RETURNING *
            ''', (request_type, request_id, step.level, step.approver_id, user_id),
                returning=True, cursor=cursor))
        return rows

    def get_by_id(self, step_id, cursor=None):
        return self.query_one(_STEP_SELECT + ' WHERE a.id = %s', (step_id,), cursor=cursor)

    def get_for_update(self, step_id, cursor):
        return self.query_one(
            'SELECT * FROM approvals WHERE id = %s FOR UPDATE', (step_id,), cursor=cursor)

    def get_for_request(self, request_type, request_id, cursor=None):
        """Ledger of a request, ordered by level."""
        return self.query_all(_STEP_SELECT + '''
            WHERE a.request_type = %s AND a.request_id = %s
            ORDER BY a.approval_level, a.id
        ''', (request_type, request_id), cursor=cursor)

    def count_unapproved_below(self, request_type, request_id, level, cursor=None) -> int:
        row = self.query_one('''
            SELECT COUNT(*) as cnt FROM approvals
            WHERE request_type = %s AND request_id = %s
              AND approval_level < %s AND status != 'approved'
        ''', (request_type, request_id, level), cursor=cursor)
        return row['cnt'] if row else 0

    def count_unapproved(self, request_type, request_id, cursor=None) -> int:
        row = self.query_one('''
            SELECT COUNT(*) as cnt FROM approvals
            WHERE request_type = %s AND request_id = %s AND status != 'approved'
        ''', (request_type, request_id), cursor=cursor)
        return row['cnt'] if row else 0

    def transition(self, step_id, status, comments=None, cursor=None) -> bool:
        """pending -> approved/rejected. False if the step was no longer pending."""
        return self.execute('''
            UPDATE approvals
            SET status = %s, comments = %s, processed_at = CURRENT_TIMESTAMP
            WHERE id = %s AND status = 'pending'
        ''', (status, comments, step_id), cursor=cursor) > 0

    def reject_remaining(self, request_type, request_id, comment, cursor=None) -> int:
        """Reject every step of the request still pending. Returns how many."""
        return self.execute('''
            UPDATE approvals
            SET status = 'rejected', comments = %s, processed_at = CURRENT_TIMESTAMP
            WHERE request_type = %s AND request_id = %s AND status = 'pending'
        ''', (comment, request_type, request_id), cursor=cursor)

    def approve_all_pending(self, request_type, request_id, comment, cursor=None) -> int:
        return self.execute('''
            UPDATE approvals
            SET status = 'approved', comments = %s, processed_at = CURRENT_TIMESTAMP
            WHERE request_type = %s AND request_id = %s AND status = 'pending'
        ''', (comment, request_type, request_id), cursor=cursor)

    # ── Approver inbox ──

    _ACTIONABLE = '''
        FROM approvals a
        JOIN account_requests r ON r.id = a.request_id
        WHERE a.approver_id = %s
          AND a.status = 'pending'
          AND r.status = 'pending'
          AND NOT EXISTS (
              SELECT 1 FROM approvals prev
              WHERE prev.request_type = a.request_type
                AND prev.request_id = a.request_id
                AND prev.approval_level < a.approval_level
                AND prev.status != 'approved'
          )
    '''

    def get_visible_for_approver(self, approver_id, limit=50, offset=0):
        """Pending steps the approver can act on now (all lower levels approved)."""
        return self.query_all('''
            SELECT a.*, r.requester_name, r.email, r.division_id, r.requested_by,
                   r.created_at as submitted_at
        ''' + self._ACTIONABLE + '''
            ORDER BY a.created_at ASC
            LIMIT %s OFFSET %s
        ''', (approver_id, limit, offset))

    def count_visible_for_approver(self, approver_id) -> int:
        row = self.query_one('SELECT COUNT(*) as cnt' + self._ACTIONABLE, (approver_id,))
        return row['cnt'] if row else 0
