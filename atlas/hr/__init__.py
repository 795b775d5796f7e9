"""ATLAS HR Section.

- Employees: the employee record store mutated by approved requests
- History: append-only employee history
- Onboarding: account setup from approved account requests
"""
from flask import Blueprint

hr_bp = Blueprint('hr', __name__)

from . import routes  # noqa: E402, F401
