"""Authorization guard for approval requests.

Every check raises before anything is written, so a violation never
leaves a partially applied request behind.
"""

import logging

from .exceptions import ForbiddenError, NotFoundError, ConflictError

logger = logging.getLogger('atlas.core.approvals.guard')

READ_ANY = 'user:read:any'
READ_OWN_DIVISION = 'user:read:own_division'
READ_SELF = 'user:read:self'

HISTORY_ANY = 'user:view_history:any'
HISTORY_OWN_DIVISION = 'user:view_history:own_division'
HISTORY_SELF = 'user:view_history:self'

# Company-wide workflow dashboards without row-level read access
ANALYTICS_PERMISSIONS = {'system:manage_analytics', 'dashboard:read'}


def _perms(actor):
    return set(getattr(actor, 'permissions', None) or [])


class AuthorizationGuard:

    def __init__(self, hierarchy, division_repo):
        self.hierarchy = hierarchy
        self._division_repo = division_repo

    def actor_level(self, actor) -> int:
        return self.hierarchy.level_for({
            'name': actor.role_name,
            'hierarchy_level': getattr(actor, 'hierarchy_level', None),
        })

    def subject_level(self, user) -> int:
        return self.hierarchy.level_for({
            'name': user.get('role_name'),
            'hierarchy_level': user.get('hierarchy_level'),
        })

    # ── Submission ──

    def check_submission(self, actor, requested_role, target_user=None):
        """Submitter may not hand out a role above their own, nor act on a peer or superior.

        Args:
            actor: submitting user
            requested_role: role row ({'name', 'hierarchy_level'})
            target_user: employee row of the request subject, if any
        """
        if self.hierarchy.is_top(actor.role_name):
            return

        level = self.actor_level(actor)
        requested_level = self.hierarchy.level_for(requested_role)
        if level > requested_level:
            raise ForbiddenError(
                f"Cannot request role {requested_role.get('name')}: it ranks above your own",
                actor_level=level, requested_level=requested_level)

        if target_user is not None:
            target_level = self.subject_level(target_user)
            if level >= target_level:
                raise ForbiddenError(
                    'You can only submit requests for users below your hierarchy level',
                    actor_level=level, target_level=target_level)

    def check_transfer_target(self, target_user):
        if self._division_repo.is_manager(target_user['id']):
            raise ForbiddenError(
                'A division manager cannot be transferred; assign a new manager first',
                user_id=target_user['id'])

    # ── Step actions ──

    def check_step_action(self, step, actor):
        """Step must exist, still be pending and belong to the actor."""
        if not step:
            raise NotFoundError('Approval step not found')
        if step['status'] != 'pending':
            raise ConflictError(f"Approval step already {step['status']}",
                                step_id=step['id'], status=step['status'])
        if step['approver_id'] != actor.id:
            raise ForbiddenError('You are not the approver for this step', step_id=step['id'])

    # ── Read scoping ──

    def can_view_request(self, actor, request, approver_ids=()) -> bool:
        if actor.id in approver_ids:
            return True
        perms = _perms(actor)
        if READ_ANY in perms:
            return True
        if READ_OWN_DIVISION in perms:
            return bool(actor.division_id) and request.get('division_id') == actor.division_id
        if READ_SELF in perms:
            return request.get('requested_by') == actor.id
        return False

    def list_scope(self, actor):
        """Filter for request listings: {} for all, a narrowing dict, or None for nothing."""
        perms = _perms(actor)
        if READ_ANY in perms:
            return {}
        if READ_OWN_DIVISION in perms:
            if not actor.division_id:
                return None
            return {'division_id': actor.division_id}
        if READ_SELF in perms:
            return {'requested_by': actor.id}
        return None

    def analytics_scope(self, actor):
        """list_scope, widened to everything for roles that only hold dashboard access."""
        perms = _perms(actor)
        if not perms & {READ_ANY, READ_OWN_DIVISION, READ_SELF} and perms & ANALYTICS_PERMISSIONS:
            return {}
        return self.list_scope(actor)

    def can_view_employee(self, actor, employee) -> bool:
        """History and profile reads of another employee."""
        perms = _perms(actor)
        if perms & {READ_ANY, HISTORY_ANY}:
            return True
        if perms & {READ_OWN_DIVISION, HISTORY_OWN_DIVISION} and actor.division_id \
                and employee.get('division_id') == actor.division_id:
            return True
        if perms & {READ_SELF, HISTORY_SELF} and employee.get('id') == actor.id:
            return True
        return False
