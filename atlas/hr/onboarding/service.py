"""Account setup for approved account requests.

Approval of an account request for a new email issues a setup token.
The applicant opens the emailed link, chooses a password and fills in
profile details; the account, its 'hired' history entry and the token
invalidation are written together.
"""

import logging
from datetime import datetime, timezone

from werkzeug.security import generate_password_hash

from database import transaction, get_cursor
from core.approvals.exceptions import ValidationError, NotFoundError
from core.approvals.repositories import RequestRepository
from core.notifications.notify import notify_user
from hr.employees.repositories import EmployeeRepository
from hr.history.repositories import EmployeeHistoryRepository

logger = logging.getLogger('atlas.hr.onboarding.service')

MIN_PASSWORD_LENGTH = 8

PROFILE_FIELDS = (
    'phone', 'date_of_birth', 'national_id', 'address',
    'emergency_contact_name', 'emergency_contact_phone', 'emergency_contact_relation',
)


class AccountSetupService:

    def __init__(self):
        self._request_repo = RequestRepository()
        self._employee_repo = EmployeeRepository()
        self._history_repo = EmployeeHistoryRepository()

    def verify(self, token):
        """Public view of the request behind a setup token.

        Raises:
            NotFoundError: token unknown, expired or already used
            ValidationError: an account with the request's email exists
        """
        req = self._request_repo.get_by_setup_token(token)
        if not req:
            raise NotFoundError('Invalid or expired setup link')
        if self._employee_repo.get_by_email(req['email']):
            raise ValidationError('An account with this email already exists')
        return {
            'email': req['email'],
            'full_name': req['requester_name'],
            'phone': req.get('phone'),
            'role_name': req.get('requested_role_name'),
            'division_name': req.get('division_name'),
            'expires_at': req.get('setup_token_expires_at'),
        }

    def complete(self, token, data):
        """Create the account. Returns {'user_id', 'email'}."""
        password = data.get('password') or ''
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {MIN_PASSWORD_LENGTH} characters', field='password')
        profile = {name: data.get(name) or None for name in PROFILE_FIELDS}

        with transaction() as conn:
            cursor = get_cursor(conn)
            req = self._request_repo.get_by_setup_token(token, cursor=cursor)
            if not req:
                raise NotFoundError('Invalid or expired setup link')
            # Lock so two submissions of the same link cannot both create an account
            self._request_repo.get_for_update(req['id'], cursor)
            if self._employee_repo.get_by_email(req['email'], cursor=cursor):
                raise ValidationError('An account with this email already exists')

            if not profile['phone']:
                profile['phone'] = req.get('phone')
            hire_date = datetime.now(timezone.utc).date()
            user_id = self._employee_repo.create_from_setup(
                req['email'], req['requester_name'], generate_password_hash(password),
                req['requested_role'], req['division_id'], hire_date,
                cursor=cursor, **profile,
            )
            self._history_repo.record(
                'hired',
                {},
                {'role_id': req['requested_role'], 'division_id': req['division_id'],
                 'status': 'active'},
                req.get('approved_by') or req['requested_by'],
                user_id=user_id,
                effective_date=hire_date,
                reason='Account setup completed',
                cursor=cursor,
            )
            self._request_repo.clear_setup_token(req['id'], user_id=user_id, cursor=cursor)

        logger.info(f"Account {user_id} created from request {req['id']}")
        notify_user(req['requested_by'], 'account_setup_completed',
                    f"{req['requester_name']} completed account setup",
                    data={'request_id': req['id'], 'user_id': user_id})
        return {'user_id': user_id, 'email': req['email']}
