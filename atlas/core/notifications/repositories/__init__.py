from .in_app_repo import InAppNotificationRepository

__all__ = ['InAppNotificationRepository']
