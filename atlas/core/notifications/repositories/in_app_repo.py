"""In-app notification repository.

The `notifications` table behind the notification center: approval
handlers write to it, users read and acknowledge their own rows.
"""

import json
import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('atlas.core.notifications.in_app_repo')


class InAppNotificationRepository(BaseRepository):

    def create(self, user_id, category, title, body=None, data=None):
        """Create a notification for a user. Returns notification id."""
        row = self.execute('''
            INSERT INTO notifications (user_id, category, title, body, data)
            VALUES (%s, %s, %s, %s, %s::jsonb)
            RETURNING id
        ''', (user_id, category, title, body, json.dumps(data or {})), returning=True)
        return row['id'] if row else None

    def get_for_user(self, user_id, limit=20, offset=0, unread_only=False):
        """Notifications for a user, newest first."""
        where = 'WHERE user_id = %s'
        params = [user_id]
        if unread_only:
            where += ' AND is_read = FALSE'
        params.extend([limit, offset])
        return self.query_all(f'''
            SELECT * FROM notifications
            {where}
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        ''', params)

    def count_for_user(self, user_id, unread_only=False):
        sql = 'SELECT COUNT(*) AS cnt FROM notifications WHERE user_id = %s'
        if unread_only:
            sql += ' AND is_read = FALSE'
        row = self.query_one(sql, (user_id,))
        return row['cnt'] if row else 0

    def get_unread_count(self, user_id):
        return self.count_for_user(user_id, unread_only=True)

    def mark_read(self, notification_id, user_id):
        """Mark one of the user's notifications as read. Returns the row, or None if not theirs."""
        return self.execute('''
            UPDATE notifications SET is_read = TRUE
            WHERE id = %s AND user_id = %s
            RETURNING *
        ''', (notification_id, user_id), returning=True)

    def mark_all_read(self, user_id):
        """Mark every unread notification of a user as read. Returns count updated."""
        return self.execute(
            'UPDATE notifications SET is_read = TRUE WHERE user_id = %s AND is_read = FALSE',
            (user_id,)
        )
