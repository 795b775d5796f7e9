"""
Approval Engine Configuration

Environment variables and settings for the approval workflow engine.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from core.roles.hierarchy import DEFAULT_ROLE_HIERARCHY, RoleHierarchy

logger = logging.getLogger('atlas.core.approvals.config')


def _env_list(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(',') if part.strip())


@dataclass
class ApprovalConfig:
    """Approval engine settings."""

    ROLE_HIERARCHY: dict = field(default_factory=lambda: dict(DEFAULT_ROLE_HIERARCHY))
    TOP_ROLE: str = 'Superadmin'                      # Bypasses the submission hierarchy check
    AUTO_APPROVE_ROLES: tuple = ('Director',)         # Submitters whose requests skip sign-off
    TEMPLATES_FILE: Optional[str] = None              # JSON override of DEFAULT_TEMPLATES
    SETUP_TOKEN_TTL_DAYS: int = 7
    APP_BASE_URL: str = 'http://localhost:5173'

    @classmethod
    def from_env(cls) -> 'ApprovalConfig':
        """Load configuration from environment variables."""
        hierarchy = dict(DEFAULT_ROLE_HIERARCHY)
        raw_hierarchy = os.environ.get('APPROVAL_ROLE_HIERARCHY')
        if raw_hierarchy:
            try:
                hierarchy = {str(k): int(v) for k, v in json.loads(raw_hierarchy).items()}
            except (ValueError, TypeError, AttributeError) as e:
                logger.error(f'Ignoring invalid APPROVAL_ROLE_HIERARCHY: {e}')

        return cls(
            ROLE_HIERARCHY=hierarchy,
            TOP_ROLE=os.environ.get('APPROVAL_TOP_ROLE', 'Superadmin'),
            AUTO_APPROVE_ROLES=_env_list('APPROVAL_AUTO_APPROVE_ROLES', ('Director',)),
            TEMPLATES_FILE=os.environ.get('APPROVAL_TEMPLATES_FILE') or None,
            SETUP_TOKEN_TTL_DAYS=int(os.environ.get('SETUP_TOKEN_TTL_DAYS', '7')),
            APP_BASE_URL=os.environ.get('APP_BASE_URL', 'http://localhost:5173').rstrip('/'),
        )

    def load_templates(self) -> Optional[dict]:
        """Template data from TEMPLATES_FILE, or None for the built-in set."""
        if not self.TEMPLATES_FILE:
            return None
        with open(self.TEMPLATES_FILE, encoding='utf-8') as fh:
            return json.load(fh)

    def hierarchy(self) -> RoleHierarchy:
        """Role ranking shared by the engine and the HR read routes."""
        return RoleHierarchy(self.ROLE_HIERARCHY, top_role=self.TOP_ROLE)
