"""Business effects of fully approved requests.

``EffectApplier.apply`` runs inside the transaction that finalizes the
request; any exception rolls both back, so the effect and the request's
approved status always land together.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from .exceptions import NotFoundError, UnsupportedRequestTypeError

logger = logging.getLogger('atlas.core.approvals.effects')


class EffectApplier:

    def __init__(self, employee_repo, history_repo, request_repo, config):
        self._employee_repo = employee_repo
        self._history_repo = history_repo
        self._request_repo = request_repo
        self.config = config
        self._handlers = {
            'account_request': self._apply_account_request,
            'promotion': self._apply_promotion,
            'transfer': self._apply_transfer,
            'termination': self._apply_termination,
        }

    def apply(self, request, actor_id, cursor) -> dict:
        """Apply the effect of an approved request. Returns an outcome dict for event handlers.

        Args:
            request: the locked account_requests row
            actor_id: user completing the approval
            cursor: cursor of the finalizing transaction
        """
        handler = self._handlers.get(request['request_type'])
        if handler is None:
            raise UnsupportedRequestTypeError(
                f"No effect defined for {request['request_type']}",
                request_type=request['request_type'])
        outcome = handler(request, actor_id, cursor)
        logger.info(f"Effect applied for request {request['id']} "
                    f"({request['request_type']}): {outcome['action']}")
        return outcome

    def _target(self, request, cursor):
        user = self._employee_repo.get_by_id(request['user_id'], cursor=cursor) \
            if request.get('user_id') else None
        if not user:
            raise NotFoundError(f"Target user {request.get('user_id')} not found",
                                request_id=request['id'])
        return user

    def _apply_account_request(self, request, actor_id, cursor):
        existing = self._employee_repo.get_by_email(request['email'], cursor=cursor)
        if existing:
            self._employee_repo.reactivate(
                existing['id'], request['requested_role'], request['division_id'], cursor=cursor)
            return {
                'action': 'account_reactivated',
                'user_id': existing['id'],
                'email': existing['email'],
                'full_name': existing.get('full_name'),
            }

        token = secrets.token_hex(32)
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.config.SETUP_TOKEN_TTL_DAYS)
        self._request_repo.set_setup_token(request['id'], token, expires_at, cursor=cursor)
        return {
            'action': 'setup_token_issued',
            'email': request['email'],
            'full_name': request.get('requester_name'),
            'setup_token': token,
            'expires_at': expires_at.isoformat(),
        }

    def _apply_promotion(self, request, actor_id, cursor):
        user = self._target(request, cursor)
        old_role_id = user.get('role_id')
        self._employee_repo.update_role(user['id'], request['requested_role'], cursor=cursor)
        history_id = self._history_repo.record(
            'promotion',
            {'role_id': old_role_id},
            {'role_id': request['requested_role']},
            request['requested_by'],
            user_id=user['id'],
            reason=request.get('notes') or 'Promotion approved',
            cursor=cursor,
        )
        return {
            'action': 'role_changed',
            'user_id': user['id'],
            'email': user.get('email'),
            'full_name': user.get('full_name'),
            'old_role_id': old_role_id,
            'new_role_id': request['requested_role'],
            'history_id': history_id,
        }

    def _apply_transfer(self, request, actor_id, cursor):
        user = self._target(request, cursor)
        old_division_id = user.get('division_id')
        self._employee_repo.update_division(user['id'], request['division_id'], cursor=cursor)
        history_id = self._history_repo.record(
            'transfer',
            {'division_id': old_division_id},
            {'division_id': request['division_id']},
            request['requested_by'],
            user_id=user['id'],
            reason=request.get('notes') or 'Transfer approved',
            cursor=cursor,
        )
        return {
            'action': 'division_changed',
            'user_id': user['id'],
            'email': user.get('email'),
            'full_name': user.get('full_name'),
            'old_division_id': old_division_id,
            'new_division_id': request['division_id'],
            'history_id': history_id,
        }

    def _apply_termination(self, request, actor_id, cursor):
        user = self._target(request, cursor)
        old_status = user.get('status')
        termination_date = datetime.now(timezone.utc).date()
        self._employee_repo.terminate(user['id'], termination_date, cursor=cursor)
        history_id = self._history_repo.record(
            'terminated',
            {'status': old_status},
            {'status': 'terminated'},
            request['requested_by'],
            user_id=user['id'],
            reason=request.get('notes') or 'Termination approved',
            cursor=cursor,
        )
        return {
            'action': 'terminated',
            'user_id': user['id'],
            'email': user.get('email'),
            'full_name': user.get('full_name'),
            'termination_date': termination_date.isoformat(),
            'history_id': history_id,
        }
