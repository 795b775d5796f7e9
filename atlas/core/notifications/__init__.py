"""Notification collaborators: in-app notification center and outbound email."""
from flask import Blueprint

notifications_bp = Blueprint('notifications', __name__)

from . import routes  # noqa: E402, F401
