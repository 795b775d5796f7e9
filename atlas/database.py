"""ATLAS Database Module.

One psycopg2 ThreadedConnectionPool per process. Repositories borrow a
connection per call (get_db/release_db); multi-statement work such as an
approval decision borrows one for the whole ``transaction()`` block.
"""
import os
import logging
import threading
from contextlib import contextmanager

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger('atlas.database')

DATABASE_URL = os.environ.get('DATABASE_URL')

if not DATABASE_URL:
    raise ValueError('DATABASE_URL environment variable is required (PostgreSQL DSN).')

POOL_MIN_CONN = int(os.environ.get('DB_POOL_MIN_CONN', '2'))
POOL_MAX_CONN = int(os.environ.get('DB_POOL_MAX_CONN', '8'))
CHECKOUT_ATTEMPTS = 3

_STALE_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)

_connection_pool = None
_pool_lock = threading.Lock()


def _get_pool():
    global _connection_pool
    if _connection_pool is None:
        with _pool_lock:
            if _connection_pool is None:
                _connection_pool = pool.ThreadedConnectionPool(
                    minconn=POOL_MIN_CONN,
                    maxconn=POOL_MAX_CONN,
                    dsn=DATABASE_URL,
                    keepalives=1,
                    keepalives_idle=30,
                    connect_timeout=5,
                    application_name='atlas-hr',
                )
                logger.info(f'Connection pool ready ({POOL_MIN_CONN}-{POOL_MAX_CONN} connections)')
    return _connection_pool


def _discard(conn):
    try:
        _get_pool().putconn(conn, close=True)
    except pool.PoolError as e:
        logger.warning(f'Could not discard stale connection: {e}')


def get_db():
    """Borrow a healthy connection from the pool.

    A server-closed connection fails the check query and is dropped from
    the pool; up to CHECKOUT_ATTEMPTS connections are tried.
    """
    last_error = None
    for _ in range(CHECKOUT_ATTEMPTS):
        conn = _get_pool().getconn()
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            conn.rollback()
            return conn
        except _STALE_ERRORS as e:
            last_error = e
            _discard(conn)

    raise psycopg2.OperationalError(
        f'No usable database connection after {CHECKOUT_ATTEMPTS} attempts: {last_error}')


def release_db(conn):
    """Return a connection to the pool."""
    if not conn or not _connection_pool:
        return
    if conn.closed:
        _discard(conn)
        return
    conn.autocommit = False
    _connection_pool.putconn(conn)


def get_cursor(conn):
    """Cursor whose rows are dicts."""
    return conn.cursor(cursor_factory=RealDictCursor)


@contextmanager
def transaction():
    """Run a block as one database transaction.

        with transaction() as conn:
            cursor = get_cursor(conn)
            cursor.execute('SELECT ... FOR UPDATE')
            cursor.execute('UPDATE ...')

    Commits when the block exits normally and rolls back when it raises.
    Row locks taken inside are held until then, so concurrent decisions on
    one request queue up behind each other.
    """
    conn = get_db()
    try:
        conn.autocommit = False
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.warning(f'Transaction rolled back: {type(e).__name__}: {e}')
        raise
    finally:
        release_db(conn)


def ping_db():
    """True when the database answers a trivial query."""
    try:
        conn = get_db()
    except psycopg2.Error as e:
        logger.warning(f'Database ping failed: {e}')
        return False
    try:
        with conn.cursor() as cur:
            cur.execute('SELECT 1')
        return True
    except psycopg2.Error as e:
        logger.warning(f'Database ping failed: {e}')
        return False
    finally:
        release_db(conn)


def dict_from_row(row):
    """Plain dict from a row, with dates and timestamps as ISO strings."""
    if row is None:
        return None
    return {key: (value.isoformat() if hasattr(value, 'isoformat') else value)
            for key, value in dict(row).items()}


def init_db():
    """Create tables and seed roles. Idempotent; runs on every startup."""
    from migrations.init_schema import create_schema

    conn = get_db()
    try:
        create_schema(conn, get_cursor(conn))
        conn.commit()
        logger.info('Database schema ready')
    except Exception:
        conn.rollback()
        logger.exception('Database schema initialization failed')
        raise
    finally:
        release_db(conn)
