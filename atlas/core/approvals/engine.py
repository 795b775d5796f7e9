"""ApprovalEngine: core orchestrator for HR approval requests.

All approval logic flows through this class. Routes and other modules
never touch the account_requests / approvals tables directly.

Lock order inside every transaction: request row first, then step row.
Events are fired only after the transaction has committed.
"""

import logging

from database import transaction, get_cursor
from core.roles.repositories import RoleRepository
from core.organization.repositories import DivisionRepository
from core.utils.logging_config import log_with_context
from hr.employees.repositories import EmployeeRepository
from hr.history.repositories import EmployeeHistoryRepository

from . import hooks
from .analytics import WorkflowAnalytics
from .config import ApprovalConfig
from .effects import EffectApplier
from .exceptions import (
    ValidationError, NotFoundError, ConflictError, NotUnlockedError, NoApproverError,
    ForbiddenError,
)
from .guard import AuthorizationGuard
from .repositories import RequestRepository, StepRepository
from .resolver import ApproverResolver, SubjectContext
from .templates import REQUEST_TYPES, WorkflowTemplateResolver

logger = logging.getLogger('atlas.core.approvals.engine')

# Request types acting on an existing employee
SUBJECT_REQUEST_TYPES = ('promotion', 'transfer', 'termination')
# Request types that must name a (target) division
DIVISION_REQUEST_TYPES = ('account_request', 'transfer')

CASCADE_COMMENT = 'Auto-rejected due to rejection at another level'


def _int_field(data, name):
    value = data.get(name)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer', field=name)


class ApprovalEngine:

    def __init__(self, config=None, hierarchy=None, templates=None):
        self.config = config or ApprovalConfig.from_env()
        self.hierarchy = hierarchy or self.config.hierarchy()
        self.templates = templates or WorkflowTemplateResolver(self.config.load_templates())

        self._request_repo = RequestRepository()
        self._step_repo = StepRepository()
        self._employee_repo = EmployeeRepository()
        self._division_repo = DivisionRepository()
        self._role_repo = RoleRepository()
        self._history_repo = EmployeeHistoryRepository()

    # Collaborators are built on access so swapped repositories are always used

    @property
    def resolver(self):
        return ApproverResolver(self._employee_repo, self._division_repo)

    @property
    def guard(self):
        return AuthorizationGuard(self.hierarchy, self._division_repo)

    @property
    def effects(self):
        return EffectApplier(self._employee_repo, self._history_repo,
                             self._request_repo, self.config)

    @property
    def analytics(self):
        return WorkflowAnalytics(self._request_repo, self._step_repo, self.guard)

    def _atomic(self, work):
        """Run work(cursor) in one transaction; commit on return, roll back on raise."""
        with transaction() as conn:
            return work(get_cursor(conn))

    # ════════════════════════════════════════════
    # Submission
    # ════════════════════════════════════════════

    def submit(self, data, actor):
        """Validate, persist and route a new request.

        1. Validate fields, target user, role and division
        2. Authorization (hierarchy, transfer guard)
        3. Resolve the approver chain (nothing written if it is empty)
        4. Persist request + ledger in one transaction
        5. Auto-approve for escalation roles
        6. Fire hooks

        Returns {'request', 'approvals', 'auto_approved'}.
        """
        request_type = (data.get('request_type') or '').strip()
        if not request_type:
            raise ValidationError('request_type is required', field='request_type')
        if request_type not in REQUEST_TYPES:
            raise ValidationError(f'Invalid request_type: {request_type}', field='request_type')
        template_steps = self.templates.steps_for(request_type)

        target_user_id = _int_field(data, 'target_user_id') or _int_field(data, 'user_id')
        if request_type in SUBJECT_REQUEST_TYPES and not target_user_id:
            raise ValidationError(f'target_user_id is required for {request_type}',
                                  field='target_user_id')
        target = None
        if target_user_id:
            target = self._employee_repo.get_by_id(target_user_id)
            if not target:
                raise NotFoundError(f'Target user {target_user_id} not found',
                                    user_id=target_user_id)

        # Subject-based requests default their descriptive fields to the subject
        requester_name = (data.get('requester_name') or '').strip() or \
            (target.get('full_name') if target else '')
        email = (data.get('email') or '').strip().lower() or \
            (target.get('email') if target else '')
        role_ref = data.get('requested_role')
        if role_ref in (None, '') and target:
            role_ref = target.get('role_id')
        division_id = _int_field(data, 'division_id')
        if division_id is None and target and request_type != 'transfer':
            division_id = target.get('division_id')

        missing = [name for name, value in (
            ('requester_name', requester_name), ('email', email), ('requested_role', role_ref),
        ) if value in (None, '')]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
        if request_type in DIVISION_REQUEST_TYPES and not division_id:
            raise ValidationError(f'division_id is required for {request_type}',
                                  field='division_id')

        role = self._role_repo.resolve(role_ref)
        if not role:
            raise ValidationError(f'Unknown role: {role_ref}', field='requested_role')
        if division_id and not self._division_repo.get(division_id):
            raise ValidationError(f'Unknown division: {division_id}', field='division_id')

        guard = self.guard
        guard.check_submission(actor, role, target)
        if request_type == 'transfer':
            guard.check_transfer_target(target)
            if target.get('division_id') == division_id:
                raise ValidationError('Employee already belongs to this division',
                                      field='division_id')

        context = SubjectContext(
            request_type=request_type,
            current_division_id=target.get('division_id') if target else division_id,
            target_division_id=division_id,
            subject_user_id=target_user_id,
        )
        chain = self.resolver.resolve_chain(template_steps, context)
        if not chain:
            raise NoApproverError(
                f'No approver could be resolved for {request_type}', request_type=request_type)

        def _persist(cursor):
            created = self._request_repo.create(
                request_type, requester_name, email, role['id'], division_id, actor.id,
                user_id=target_user_id, phone=data.get('phone'), notes=data.get('notes'),
                cursor=cursor,
            )
            steps = self._step_repo.create_many(
                request_type, created['id'], chain, user_id=target_user_id, cursor=cursor)
            return created, steps

        created, steps = self._atomic(_persist)
        request_id = created['id']
        log_with_context(logger, logging.INFO, 'Request submitted',
                         request_id=request_id, request_type=request_type,
                         actor_id=actor.id, levels=len(steps))

        hooks.fire('approval.submitted', {
            **self._payload(created),
            'approver_ids': [s.approver_id for s in chain],
        })

        auto_approved = False
        if actor.role_name in self.config.AUTO_APPROVE_ROLES:
            auto_approved = self._auto_approve(created, actor)

        if not auto_approved:
            for step in steps:
                hooks.fire('approval.step_assigned', {
                    **self._payload(created),
                    'step_id': step['id'],
                    'approval_level': step['approval_level'],
                    'approver_id': step['approver_id'],
                    'unlocked': step['approval_level'] == 1,
                })

        result = self.get_request_detail(request_id)
        result['auto_approved'] = auto_approved
        return result

    def _auto_approve(self, request, actor) -> bool:
        """Approve every step and apply the effect at once.

        Failure leaves the request pending with its ledger untouched.
        """
        comment = f'Auto-approved (requested by {actor.role_name})'

        def _work(cursor):
            locked = self._request_repo.get_for_update(request['id'], cursor)
            self._step_repo.approve_all_pending(
                locked['request_type'], locked['id'], comment, cursor=cursor)
            outcome = self.effects.apply(locked, actor.id, cursor)
            if not self._request_repo.finalize(locked['id'], 'approved',
                                               approved_by=actor.id, cursor=cursor):
                raise ConflictError(f"Request {locked['id']} is no longer pending")
            return outcome

        try:
            outcome = self._atomic(_work)
        except Exception as e:
            log_with_context(logger, logging.ERROR, 'Auto-approval failed, request left pending',
                             exc_info=True, request_id=request['id'],
                             request_type=request['request_type'], actor_id=actor.id)
            hooks.fire('approval.auto_approve_failed', {
                **self._payload(request), 'actor_id': actor.id, 'error': str(e),
            })
            return False

        hooks.fire('approval.approved', {
            **self._payload(request),
            'approved_by': actor.id,
            'auto_approved': True,
            'outcome': outcome,
        })
        return True

    # ════════════════════════════════════════════
    # Decisions
    # ════════════════════════════════════════════

    def _lock_for_decision(self, step_id, actor, cursor):
        """Lock request then step, and re-check the step under the lock."""
        step = self._step_repo.get_by_id(step_id, cursor=cursor)
        self.guard.check_step_action(step, actor)
        request = self._request_repo.get_for_update(step['request_id'], cursor)
        if not request:
            raise NotFoundError(f"Request {step['request_id']} not found")
        locked_step = self._step_repo.get_for_update(step_id, cursor)
        self.guard.check_step_action(locked_step, actor)
        if request['status'] != 'pending':
            raise ConflictError(f"Request already {request['status']}",
                                request_id=request['id'], status=request['status'])
        return request, locked_step

    def approve(self, step_id, actor, comment=None):
        """Approve one level. The last approval applies the effect and closes the request.

        Raises:
            NotFoundError: unknown step
            ConflictError: step or request already processed
            ForbiddenError: actor is not the step's approver
            NotUnlockedError: a lower level is not approved yet
        """
        def _work(cursor):
            request, step = self._lock_for_decision(step_id, actor, cursor)
            blocking = self._step_repo.count_unapproved_below(
                request['request_type'], request['id'], step['approval_level'], cursor=cursor)
            if blocking:
                raise NotUnlockedError(
                    'Previous approval levels must be approved first',
                    step_id=step_id, blocking_levels=blocking)
            if not self._step_repo.transition(step_id, 'approved', comment, cursor=cursor):
                raise ConflictError('Approval step already processed', step_id=step_id)

            outcome = None
            remaining = self._step_repo.count_unapproved(
                request['request_type'], request['id'], cursor=cursor)
            if remaining == 0:
                outcome = self.effects.apply(request, actor.id, cursor)
                if not self._request_repo.finalize(request['id'], 'approved',
                                                   approved_by=actor.id, cursor=cursor):
                    raise ConflictError(f"Request {request['id']} is no longer pending")
            return request, step, outcome, remaining

        request, step, outcome, remaining = self._atomic(_work)
        completed = remaining == 0
        log_with_context(logger, logging.INFO,
                         'Request approved' if completed else 'Approval level approved',
                         request_id=request['id'], step_id=step_id,
                         approval_level=step['approval_level'], actor_id=actor.id)

        if completed:
            hooks.fire('approval.approved', {
                **self._payload(request),
                'approved_by': actor.id,
                'auto_approved': False,
                'outcome': outcome,
            })
        else:
            next_level = step['approval_level'] + 1
            next_approvers = [
                s['approver_id'] for s in self._step_repo.get_for_request(
                    request['request_type'], request['id'])
                if s['approval_level'] == next_level and s['status'] == 'pending'
            ]
            hooks.fire('approval.step_approved', {
                **self._payload(request),
                'step_id': step_id,
                'approval_level': step['approval_level'],
                'approved_by': actor.id,
                'next_level': next_level,
                'next_approver_ids': next_approvers,
            })

        return {
            'step': self._step_repo.get_by_id(step_id),
            'request': self._request_repo.get_by_id(request['id']),
            'completed': completed,
        }

    def reject(self, step_id, actor, comment=None):
        """Reject one level; every other pending level is rejected with it."""
        def _work(cursor):
            request, step = self._lock_for_decision(step_id, actor, cursor)
            if not self._step_repo.transition(step_id, 'rejected', comment, cursor=cursor):
                raise ConflictError('Approval step already processed', step_id=step_id)
            cascaded = self._step_repo.reject_remaining(
                request['request_type'], request['id'], CASCADE_COMMENT, cursor=cursor)
            if not self._request_repo.finalize(request['id'], 'rejected', cursor=cursor):
                raise ConflictError(f"Request {request['id']} is no longer pending")
            return request, step, cascaded

        request, step, cascaded = self._atomic(_work)
        log_with_context(logger, logging.INFO, 'Request rejected',
                         request_id=request['id'], step_id=step_id,
                         approval_level=step['approval_level'], actor_id=actor.id, cascaded=cascaded)

        hooks.fire('approval.rejected', {
            **self._payload(request),
            'step_id': step_id,
            'approval_level': step['approval_level'],
            'rejected_by': actor.id,
            'comment': comment,
        })

        return {
            'step': self._step_repo.get_by_id(step_id),
            'request': self._request_repo.get_by_id(request['id']),
            'cascaded': cascaded,
        }

    # ════════════════════════════════════════════
    # Queries
    # ════════════════════════════════════════════

    def get_request_detail(self, request_id):
        request = self._request_repo.get_by_id(request_id)
        if not request:
            raise NotFoundError(f'Request {request_id} not found')
        return {
            'request': request,
            'approvals': self._step_repo.get_for_request(request['request_type'], request_id),
        }

    def get_request(self, request_id, actor):
        """Request with its ledger, if the actor may see it."""
        detail = self.get_request_detail(request_id)
        approver_ids = {s['approver_id'] for s in detail['approvals']}
        if not self.guard.can_view_request(actor, detail['request'], approver_ids):
            raise ForbiddenError('Access denied', request_id=request_id)
        return detail

    def list_requests(self, actor, status=None, request_type=None, division_id=None,
                      search=None, limit=20, offset=0):
        scope = self.guard.list_scope(actor)
        if scope is None:
            return {'requests': [], 'total': 0}
        filters = {
            'status': status, 'request_type': request_type,
            'division_id': division_id, 'search': search,
        }
        filters.update(scope)
        return self._request_repo.list_requests(limit=limit, offset=offset, **filters)

    def pending_for_user(self, actor, limit=50, offset=0):
        """Steps the actor can act on now, each with the full request timeline."""
        items = self._step_repo.get_visible_for_approver(actor.id, limit=limit, offset=offset)
        for item in items:
            item['timeline'] = self._step_repo.get_for_request(
                item['request_type'], item['request_id'])
        return items

    def queue_count(self, actor) -> int:
        return self._step_repo.count_visible_for_approver(actor.id)

    def preview_workflow(self, request_type):
        """Template steps (roles only) of a request type."""
        return self.templates.describe(request_type)

    @staticmethod
    def _payload(request):
        return {
            'request_id': request['id'],
            'request_type': request['request_type'],
            'requester_name': request.get('requester_name'),
            'email': request.get('email'),
            'requested_by': request.get('requested_by'),
            'requested_role': request.get('requested_role'),
            'division_id': request.get('division_id'),
            'user_id': request.get('user_id'),
            'notes': request.get('notes'),
        }
