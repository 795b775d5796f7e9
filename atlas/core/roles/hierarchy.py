"""Role hierarchy table.

Lower hierarchy_level means more authority. The table is a plain value
handed to whoever needs level lookups (authorization guard, template
resolver), so deployments and tests can swap it.
"""

UNKNOWN_ROLE_LEVEL = 999

DEFAULT_ROLE_HIERARCHY = {
    'Superadmin': 1,
    'Admin': 2,
    'Director': 3,
    'Investor': 3,
    'Manager HR': 4,
    'General Manager': 4,
    'Finance': 4,
    'Manager': 5,
    'Team Lead': 6,
    'Staff': 7,
}


class RoleHierarchy:
    """Lookup of role name -> authority level."""

    def __init__(self, levels=None, top_role='Superadmin'):
        self._levels = dict(levels if levels is not None else DEFAULT_ROLE_HIERARCHY)
        self.top_role = top_role

    def level_of(self, role_name) -> int:
        """Level for a role name; unknown or empty names get the lowest authority."""
        if not role_name:
            return UNKNOWN_ROLE_LEVEL
        return self._levels.get(role_name, UNKNOWN_ROLE_LEVEL)

    def level_for(self, role) -> int:
        """Level for a role row or identity ({'name', 'hierarchy_level'}).

        The table decides for every name it lists; a stored hierarchy_level
        only ranks roles the table does not know.
        """
        if not role:
            return UNKNOWN_ROLE_LEVEL
        name = role.get('name')
        if name in self._levels:
            return self.level_of(name)
        stored = role.get('hierarchy_level')
        return int(stored) if stored is not None else UNKNOWN_ROLE_LEVEL

    def is_top(self, role_name) -> bool:
        return bool(role_name) and role_name == self.top_role
