"""Approval event handlers: in-app notifications and emails.

Registered at app startup via register_approval_hooks().
"""

import logging

from core.approvals.config import ApprovalConfig
from core.notifications.notify import notify_user
from core.notifications.mailer import send_email
from core.roles.repositories import RoleRepository
from core.organization.repositories import DivisionRepository

logger = logging.getLogger('atlas.core.approvals.handlers')

_role_repo = RoleRepository()
_division_repo = DivisionRepository()
_config = None

_LABELS = {
    'account_request': 'Account request',
    'promotion': 'Promotion',
    'transfer': 'Transfer',
    'termination': 'Termination',
}


def register_approval_hooks(config=None):
    """Register all approval event handlers. Call once at app startup."""
    from core.approvals.hooks import on

    global _config
    _config = config or ApprovalConfig.from_env()

    on('approval.step_assigned', _on_step_assigned)
    on('approval.step_approved', _on_step_approved)
    on('approval.approved', _on_approved)
    on('approval.rejected', _on_rejected)
    on('approval.auto_approve_failed', _on_auto_approve_failed)

    logger.info('Approval notification hooks registered')


def _label(payload):
    return _LABELS.get(payload.get('request_type'), payload.get('request_type', 'Request'))


def _subject(payload):
    return f"{_label(payload)} for {payload.get('requester_name') or 'an employee'}"


def _base_url():
    config = _config or ApprovalConfig.from_env()
    return config.APP_BASE_URL.rstrip('/')


def _role_name(role_id):
    role = _role_repo.get(role_id) if role_id else None
    return role['name'] if role else 'N/A'


def _division_name(division_id):
    division = _division_repo.get(division_id) if division_id else None
    return division['name'] if division else 'N/A'


def _on_step_assigned(payload):
    """Tell a resolved approver about the step they own."""
    if payload.get('unlocked'):
        notify_user(
            payload['approver_id'], 'approval_pending',
            f'{_subject(payload)} needs your approval',
            body=f"Level {payload['approval_level']} is waiting for your decision.",
            data={'request_id': payload['request_id'], 'step_id': payload['step_id']},
        )
    else:
        notify_user(
            payload['approver_id'], 'approval_queued',
            f'{_subject(payload)} submitted',
            body=f"You approve level {payload['approval_level']} once earlier levels are approved.",
            data={'request_id': payload['request_id'], 'step_id': payload['step_id']},
        )


def _on_step_approved(payload):
    """Unlock the next level and keep the requester posted."""
    for approver_id in payload.get('next_approver_ids') or []:
        notify_user(
            approver_id, 'approval_pending',
            f'{_subject(payload)} is ready for your approval',
            body=f"Level {payload['approval_level']} was approved.",
            data={'request_id': payload['request_id']},
        )
    notify_user(
        payload.get('requested_by'), 'approval_progress',
        f"{_subject(payload)}: level {payload['approval_level']} approved",
        data={'request_id': payload['request_id']},
    )


def _on_approved(payload):
    """Notify the requester, then the people affected by the effect."""
    notify_user(
        payload.get('requested_by'), 'approval_approved',
        f'{_subject(payload)} approved',
        body='Auto-approved' if payload.get('auto_approved') else 'All approval levels completed',
        data={'request_id': payload['request_id']},
    )

    outcome = payload.get('outcome') or {}
    action = outcome.get('action')
    if action == 'setup_token_issued':
        _send_setup_link(outcome)
    elif action == 'account_reactivated':
        notify_user(outcome['user_id'], 'account_activated', 'Your account has been activated',
                    body=f"Role: {_role_name(payload.get('requested_role'))}")
        send_email(outcome.get('email'), 'Your account has been activated',
                   f"Hello {outcome.get('full_name') or ''},\n\n"
                   f'Your account is active again. Sign in at {_base_url()}.')
    elif action == 'role_changed':
        old_role = _role_name(outcome.get('old_role_id'))
        new_role = _role_name(outcome.get('new_role_id'))
        notify_user(outcome['user_id'], 'promotion', 'You have been promoted',
                    body=f'{old_role} -> {new_role}')
    elif action == 'division_changed':
        old_division = _division_name(outcome.get('old_division_id'))
        new_division = _division_name(outcome.get('new_division_id'))
        notify_user(outcome['user_id'], 'transfer', 'You have been transferred',
                    body=f'{old_division} -> {new_division}')
    elif action == 'terminated':
        send_email(outcome.get('email'), 'Employment termination notice',
                   f"Hello {outcome.get('full_name') or ''},\n\n"
                   f"Your employment ends effective {outcome.get('termination_date')}.\n"
                   f"{payload.get('notes') or ''}")


def _send_setup_link(outcome):
    link = f"{_base_url()}/setup-account/{outcome['setup_token']}"
    ok, error = send_email(
        outcome.get('email'), 'Set up your account',
        f"Hello {outcome.get('full_name') or ''},\n\n"
        f'Your account request was approved. Complete your account setup here:\n{link}\n\n'
        f"This link expires on {outcome.get('expires_at')}.",
    )
    if not ok:
        logger.warning(f"Setup link email to {outcome.get('email')} not sent: {error}")


def _on_rejected(payload):
    comment = payload.get('comment') or 'No reason given'
    notify_user(
        payload.get('requested_by'), 'approval_rejected',
        f'{_subject(payload)} rejected',
        body=comment,
        data={'request_id': payload['request_id'], 'level': payload.get('approval_level')},
    )
    if payload.get('request_type') == 'account_request':
        send_email(payload.get('email'), 'Your account request was not approved',
                   f"Hello {payload.get('requester_name') or ''},\n\n"
                   f'Your account request was rejected.\nReason: {comment}')


def _on_auto_approve_failed(payload):
    notify_user(
        payload.get('actor_id'), 'approval_auto_failed',
        f'{_subject(payload)} could not be auto-approved',
        body='The request stays pending and follows the normal approval chain.',
        data={'request_id': payload['request_id']},
    )
