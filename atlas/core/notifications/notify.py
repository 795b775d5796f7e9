"""In-app notification helper.

    from core.notifications.notify import notify_user

    notify_user(user_id, 'approval_pending', 'New promotion request',
                'A request requires your approval', data={'request_id': 12})

Delivery is best-effort: failures are logged and never raised.
"""

import logging
from .repositories.in_app_repo import InAppNotificationRepository

logger = logging.getLogger('atlas.core.notifications.notify')

_repo = InAppNotificationRepository()


def notify_user(user_id, category, title, body=None, data=None):
    """Send an in-app notification to a single user."""
    if not user_id:
        return None
    try:
        return _repo.create(user_id, category, title, body=body, data=data)
    except Exception as e:
        logger.error(f'Failed to create notification for user {user_id}: {e}')
        return None
