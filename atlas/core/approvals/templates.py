"""Workflow templates: which approvals a request type needs.

Templates are configuration data. Each entry names an approver role; the
role name "Manager" is the only special value and means "the manager of
the subject's division" (``division``: "current" or "target"). Entries
with ``"enabled": false`` are kept so a longer chain can be switched back
on from configuration alone.

Parsing turns every entry into a TemplateStep whose ``approver`` is one
of two approver kinds:

    RoleApprover('Director')                 -> first active Director
    DivisionManagerApprover('current')       -> manager of the subject's division

Levels in a template only order the steps. Gaps are expected; the
approver resolver renumbers the resolved chain densely from 1.
"""

import logging
from dataclasses import dataclass

from .exceptions import UnsupportedRequestTypeError

logger = logging.getLogger('atlas.core.approvals.templates')

REQUEST_TYPES = ('account_request', 'promotion', 'transfer', 'termination', 'salary_change')

MANAGER_SENTINEL = 'Manager'
CURRENT_DIVISION = 'current'
TARGET_DIVISION = 'target'

DEFAULT_TEMPLATES = {
    'account_request': [
        {'level': 1, 'approver_role': 'Manager HR', 'enabled': False},
        {'level': 2, 'approver_role': 'Director'},
    ],
    'promotion': [
        {'level': 1, 'approver_role': MANAGER_SENTINEL, 'division': CURRENT_DIVISION, 'enabled': False},
        {'level': 2, 'approver_role': 'Manager HR', 'enabled': False},
        {'level': 3, 'approver_role': 'Director'},
    ],
    'termination': [
        {'level': 1, 'approver_role': MANAGER_SENTINEL, 'division': CURRENT_DIVISION, 'enabled': False},
        {'level': 2, 'approver_role': 'Manager HR', 'enabled': False},
        {'level': 3, 'approver_role': 'Director'},
    ],
    'transfer': [
        {'level': 1, 'approver_role': MANAGER_SENTINEL, 'division': CURRENT_DIVISION},
        {'level': 2, 'approver_role': MANAGER_SENTINEL, 'division': TARGET_DIVISION, 'enabled': False},
        {'level': 3, 'approver_role': 'Manager HR', 'enabled': False},
        {'level': 3, 'approver_role': 'Director'},
    ],
    # salary_change is a known request type without a template
}


@dataclass(frozen=True)
class RoleApprover:
    """Step approved by the (single) active holder of a role."""
    role_name: str

    @property
    def label(self) -> str:
        return self.role_name


@dataclass(frozen=True)
class DivisionManagerApprover:
    """Step approved by the manager of the subject's current or target division."""
    which: str = CURRENT_DIVISION

    @property
    def label(self) -> str:
        return MANAGER_SENTINEL


@dataclass(frozen=True)
class TemplateStep:
    level: int
    approver: object

    @property
    def approver_role(self) -> str:
        return self.approver.label

    def to_dict(self) -> dict:
        data = {'level': self.level, 'approver_role': self.approver_role}
        if isinstance(self.approver, DivisionManagerApprover):
            data['division'] = self.approver.which
        return data


def parse_step(entry: dict) -> TemplateStep:
    """Build a TemplateStep from one template entry."""
    role = (entry.get('approver_role') or '').strip()
    if not role:
        raise ValueError(f'Template step without approver_role: {entry}')
    level = int(entry.get('level', 1))

    if role == MANAGER_SENTINEL:
        which = entry.get('division', CURRENT_DIVISION)
        if which not in (CURRENT_DIVISION, TARGET_DIVISION):
            raise ValueError(f'Invalid division selector {which!r} in template step')
        return TemplateStep(level, DivisionManagerApprover(which))
    return TemplateStep(level, RoleApprover(role))


class WorkflowTemplateResolver:
    """Maps a request type to its ordered, enabled template steps."""

    def __init__(self, templates=None):
        raw = DEFAULT_TEMPLATES if templates is None else templates
        self._templates = {}
        for request_type, entries in raw.items():
            if request_type not in REQUEST_TYPES:
                raise ValueError(f'Template for unknown request type: {request_type}')
            enabled = [e for e in entries if e.get('enabled', True)]
            steps = [parse_step(e) for e in enabled]
            # Stable: steps sharing a level keep their declared order
            self._templates[request_type] = sorted(steps, key=lambda s: s.level)

    def steps_for(self, request_type) -> list[TemplateStep]:
        """Ordered steps for a request type.

        Raises:
            UnsupportedRequestTypeError: unknown type, or a known type with no template
        """
        if request_type not in self._templates:
            raise UnsupportedRequestTypeError(
                f'Unsupported request type: {request_type}', request_type=request_type)
        return list(self._templates[request_type])

    def request_types(self) -> list[str]:
        return [t for t in REQUEST_TYPES if t in self._templates]

    def describe(self, request_type) -> list[dict]:
        return [s.to_dict() for s in self.steps_for(request_type)]
