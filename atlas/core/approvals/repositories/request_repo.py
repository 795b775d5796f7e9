"""Repository for account_requests table (all HR request types)."""

import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.core.approvals.request_repo')

_REQUEST_SELECT = '''
    SELECT r.id, r.request_type, r.status, r.user_id, r.requester_name, r.email, r.phone,
           r.requested_role, r.division_id, r.requested_by, r.approved_by, r.notes,
           r.created_at, r.processed_at, r.updated_at,
           ro.name as requested_role_name,
           d.name as division_name,
           rb.full_name as requested_by_name, rb.email as requested_by_email,
           ab.full_name as approved_by_name,
           t.full_name as target_user_name
    FROM account_requests r
    LEFT JOIN roles ro ON ro.id = r.requested_role
    LEFT JOIN divisions d ON d.id = r.division_id
    LEFT JOIN users rb ON rb.id = r.requested_by
    LEFT JOIN users ab ON ab.id = r.approved_by
    LEFT JOIN users t ON t.id = r.user_id
'''


class RequestRepository(BaseRepository):

    def create(self, request_type, requester_name, email, requested_role, division_id,
               requested_by, user_id=None, phone=None, notes=None, cursor=None):
        """Insert a pending request. Returns the new row."""
        return self.execute('''
            INSERT INTO account_requests
                (request_type, status, user_id, requester_name, email, phone,
                 requested_role, division_id, requested_by, notes)
            VALUES (%s, 'pending', %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        ''', (
            request_type, user_id, requester_name, email, phone,
            requested_role, division_id, requested_by, notes,
        ), returning=True, cursor=cursor)

    def get_by_id(self, request_id, cursor=None):
        return self.query_one(_REQUEST_SELECT + ' WHERE r.id = %s', (request_id,), cursor=cursor)

    def get_for_update(self, request_id, cursor):
        """Lock the request row for the rest of the caller's transaction."""
        return self.query_one(
            'SELECT * FROM account_requests WHERE id = %s FOR UPDATE',
            (request_id,), cursor=cursor)

    def finalize(self, request_id, status, approved_by=None, cursor=None) -> bool:
        """Move a pending request to approved/rejected. False if it already left pending."""
        return self.execute('''
            UPDATE account_requests
            SET status = %s, approved_by = %s, processed_at = CURRENT_TIMESTAMP,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s AND status = 'pending'
        ''', (status, approved_by, request_id), cursor=cursor) > 0

    @staticmethod
    def _where(status=None, request_type=None, division_id=None, requested_by=None,
               search=None, created_from=None, created_before=None):
        """WHERE clause and params shared by listings and aggregates."""
        where = []
        params = []
        if status:
            where.append('r.status = %s')
            params.append(status)
        if request_type:
            where.append('r.request_type = %s')
            params.append(request_type)
        if division_id:
            where.append('r.division_id = %s')
            params.append(division_id)
        if requested_by:
            where.append('r.requested_by = %s')
            params.append(requested_by)
        if search:
            where.append('(r.requester_name ILIKE %s OR r.email ILIKE %s)')
            params.extend([f'%{search}%', f'%{search}%'])
        if created_from:
            where.append('r.created_at >= %s')
            params.append(created_from)
        if created_before:
            where.append('r.created_at < %s')
            params.append(created_before)
        clause = f" WHERE {' AND '.join(where)}" if where else ''
        return clause, tuple(params)

    def list_requests(self, limit=20, offset=0, **filters):
        """Filtered listing, newest first. Returns {'requests', 'total'}."""
        clause, params = self._where(**filters)
        total = self.query_one(
            f'SELECT COUNT(*) as total FROM account_requests r{clause}', params)
        rows = self.query_all(
            _REQUEST_SELECT + clause + ' ORDER BY r.created_at DESC, r.id DESC LIMIT %s OFFSET %s',
            params + (limit, offset))
        return {'requests': rows, 'total': total['total'] if total else 0}

    def stats_by_type(self, **filters):
        """Per request type: counts by status and the hours approved requests took."""
        clause, params = self._where(**filters)
        return self.query_all(f'''
            SELECT r.request_type,
                   COUNT(*) as total,
                   COUNT(*) FILTER (WHERE r.status = 'pending') as pending,
                   COUNT(*) FILTER (WHERE r.status = 'approved') as approved,
                   COUNT(*) FILTER (WHERE r.status = 'rejected') as rejected,
                   COUNT(*) FILTER (WHERE r.status = 'approved'
                                      AND r.processed_at IS NOT NULL) as timed_approvals,
                   COALESCE(SUM(EXTRACT(EPOCH FROM (r.processed_at - r.created_at)) / 3600)
                            FILTER (WHERE r.status = 'approved'
                                      AND r.processed_at IS NOT NULL), 0) as approval_hours
            FROM account_requests r{clause}
            GROUP BY r.request_type
            ORDER BY r.request_type
        ''', params)

    # ── Account setup token ──

    def set_setup_token(self, request_id, token, expires_at, cursor=None) -> bool:
        return self.execute('''
            UPDATE account_requests
            SET setup_token = %s, setup_token_expires_at = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (token, expires_at, request_id), cursor=cursor) > 0

    def get_by_setup_token(self, token, cursor=None):
        """Approved account request holding an unexpired setup token."""
        if not token:
            return None
        return self.query_one('''
            SELECT r.*, ro.name as requested_role_name, d.name as division_name
            FROM account_requests r
            LEFT JOIN roles ro ON ro.id = r.requested_role
            LEFT JOIN divisions d ON d.id = r.division_id
            WHERE r.setup_token = %s
              AND r.status = 'approved'
              AND r.setup_token_expires_at > CURRENT_TIMESTAMP
        ''', (token,), cursor=cursor)

    def clear_setup_token(self, request_id, user_id=None, cursor=None) -> bool:
        """Invalidate the token once the account exists; links the new user."""
        return self.execute('''
            UPDATE account_requests
            SET setup_token = NULL, setup_token_expires_at = NULL,
                user_id = COALESCE(%s, user_id), updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id, request_id), cursor=cursor) > 0
