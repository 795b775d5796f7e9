"""Base Repository: shared connection handling for the data-access classes.

query_one(), query_all() and execute() either borrow a pooled connection
for a single statement (committing writes), or, when given ``cursor``,
run on the caller's open transaction and leave commit/rollback and
release to the caller (see ``database.transaction()``).

    class ThingRepository(BaseRepository):
        def get(self, thing_id, cursor=None):
            return self.query_one('SELECT * FROM things WHERE id = %s', (thing_id,), cursor=cursor)

        def rename(self, thing_id, name, cursor=None) -> bool:
            return self.execute('UPDATE things SET name = %s WHERE id = %s',
                                (name, thing_id), cursor=cursor) > 0
"""

from contextlib import contextmanager

from database import get_db, get_cursor, release_db, dict_from_row


class BaseRepository:

    @contextmanager
    def _cursor(self, cursor=None, commit=False):
        """Yield ``cursor`` as is, or one on a freshly borrowed connection."""
        if cursor is not None:
            yield cursor
            return
        conn = get_db()
        try:
            own = get_cursor(conn)
            yield own
            if commit:
                conn.commit()
        except Exception:
            if commit:
                conn.rollback()
            raise
        finally:
            release_db(conn)

    def query_one(self, sql, params=None, cursor=None):
        """Single row as a dict, or None."""
        with self._cursor(cursor) as cur:
            cur.execute(sql, params or ())
            row = cur.fetchone()
            return dict_from_row(row) if row else None

    def query_all(self, sql, params=None, cursor=None):
        """All rows as a list of dicts."""
        with self._cursor(cursor) as cur:
            cur.execute(sql, params or ())
            return [dict_from_row(r) for r in cur.fetchall()]

    def execute(self, sql, params=None, returning=False, cursor=None):
        """Run an INSERT/UPDATE/DELETE.

        Returns the RETURNING row as a dict when ``returning`` is set,
        otherwise the affected row count.
        """
        with self._cursor(cursor, commit=True) as cur:
            cur.execute(sql, params or ())
            if returning:
                row = cur.fetchone()
                return dict_from_row(row) if row else None
            return cur.rowcount
