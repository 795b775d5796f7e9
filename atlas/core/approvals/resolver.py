"""Approver resolution: template steps -> concrete approvers.

A step whose approver cannot be found is skipped with a warning and the
surviving chain is renumbered 1..n in template order.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

from .templates import RoleApprover, DivisionManagerApprover, TARGET_DIVISION

logger = logging.getLogger('atlas.core.approvals.resolver')


@dataclass(frozen=True)
class SubjectContext:
    """What the approver resolver needs to know about a request."""
    request_type: str
    current_division_id: Optional[int] = None
    target_division_id: Optional[int] = None
    subject_user_id: Optional[int] = None


@dataclass(frozen=True)
class ResolvedStep:
    level: int
    approver_id: int
    approver_role: str
    approver_name: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class ApproverResolver:

    def __init__(self, employee_repo, division_repo):
        self._employee_repo = employee_repo
        self._division_repo = division_repo
        self._resolvers = {
            RoleApprover: self._resolve_role,
            DivisionManagerApprover: self._resolve_division_manager,
        }

    def resolve(self, step, context: SubjectContext) -> Optional[dict]:
        """Concrete approver user for one template step, or None."""
        resolve_fn = self._resolvers.get(type(step.approver))
        if resolve_fn is None:
            raise TypeError(f'Unknown approver kind: {step.approver!r}')
        return resolve_fn(step.approver, context)

    def resolve_chain(self, steps, context: SubjectContext) -> list[ResolvedStep]:
        """Resolve every step, drop the unresolvable ones, renumber densely."""
        chain = []
        for step in steps:
            user = self.resolve(step, context)
            if not user:
                logger.warning(
                    f'No approver for {step.approver_role} step (template level {step.level}) '
                    f'of {context.request_type}; step skipped')
                continue
            chain.append(ResolvedStep(
                level=len(chain) + 1,
                approver_id=user['id'],
                approver_role=step.approver_role,
                approver_name=user.get('full_name'),
            ))
        return chain

    def _resolve_role(self, approver: RoleApprover, context):
        return self._employee_repo.get_first_active_with_role(approver.role_name)

    def _resolve_division_manager(self, approver: DivisionManagerApprover, context):
        if approver.which == TARGET_DIVISION:
            division_id = context.target_division_id
        else:
            division_id = context.current_division_id
        if not division_id:
            logger.info(f'{context.request_type}: no {approver.which} division for manager step')
            return None
        return self._division_repo.get_manager(division_id)
