"""Database schema initialization.

CREATE TABLE / CREATE INDEX statements and the role seed for the ATLAS
HR database. Every statement is idempotent.

Called by database.init_db() at app startup.
"""
import json

from core.roles.hierarchy import DEFAULT_ROLE_HIERARCHY

_READ_ANY = ['user:read:any', 'user:view_history:any']

ROLE_PERMISSIONS = {
    'Superadmin': _READ_ANY + ['account:create', 'account:approve:any', 'system:manage'],
    'Admin': _READ_ANY + ['account:create', 'account:approve:any'],
    'Director': _READ_ANY + ['account:create', 'account:approve:any',
                             'employee:promote:any', 'employee:terminate:any',
                             'employee:transfer:any'],
    'Investor': ['dashboard:read', 'report:financial:read'],
    'Manager HR': _READ_ANY + ['account:create', 'account:approve:any',
                               'employee:promote:any', 'employee:terminate:any',
                               'employee:transfer:any'],
    'General Manager': _READ_ANY + ['account:create', 'account:approve:any',
                                    'employee:promote:any', 'employee:terminate:any',
                                    'employee:transfer:any'],
    'Finance': _READ_ANY + ['account:create'],
    'Manager': ['user:read:own_division', 'user:read:self', 'user:view_history:own_division',
                'account:create', 'account:approve:own_division',
                'employee:promote:own_division', 'employee:terminate:own_division'],
    'Team Lead': ['user:read:self', 'user:view_history:self', 'account:create'],
    'Staff': ['user:read:self', 'user:view_history:self', 'account:create'],
}


def create_schema(conn, cursor):
    """Create all tables, indexes and seed roles.

    Args:
        conn: Database connection (committed by the caller)
        cursor: Database cursor from get_cursor(conn)
    """
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS roles (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            hierarchy_level INTEGER NOT NULL DEFAULT 999,
            permissions JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT NOT NULL,
            password TEXT,
            phone TEXT,
            role_id INTEGER REFERENCES roles(id),
            division_id INTEGER,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'inactive', 'terminated')),
            hire_date DATE,
            termination_date DATE,
            date_of_birth DATE,
            national_id TEXT,
            address JSONB DEFAULT '{}'::jsonb,
            emergency_contact_name TEXT,
            emergency_contact_phone TEXT,
            emergency_contact_relation TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS divisions (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            manager_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            active_general_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        DO $$ BEGIN
            ALTER TABLE users ADD CONSTRAINT users_division_fk
                FOREIGN KEY (division_id) REFERENCES divisions(id) ON DELETE SET NULL;
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS account_requests (
            id SERIAL PRIMARY KEY,
            request_type TEXT NOT NULL
                CHECK (request_type IN ('account_request', 'promotion', 'transfer',
                                        'termination', 'salary_change')),
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            user_id INTEGER REFERENCES users(id),
            requester_name TEXT NOT NULL,
            email TEXT NOT NULL,
            phone TEXT,
            requested_role INTEGER NOT NULL REFERENCES roles(id),
            division_id INTEGER REFERENCES divisions(id),
            requested_by INTEGER NOT NULL REFERENCES users(id),
            approved_by INTEGER REFERENCES users(id),
            notes TEXT,
            setup_token TEXT UNIQUE,
            setup_token_expires_at TIMESTAMPTZ,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            processed_at TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approvals (
            id SERIAL PRIMARY KEY,
            request_type TEXT NOT NULL,
            request_id INTEGER NOT NULL REFERENCES account_requests(id),
            approval_level INTEGER NOT NULL CHECK (approval_level >= 1),
            approver_id INTEGER NOT NULL REFERENCES users(id),
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            comments TEXT,
            processed_at TIMESTAMP,
            user_id INTEGER REFERENCES users(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (request_id, approval_level)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS employee_history (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id),
            event_type TEXT NOT NULL,
            old_role INTEGER REFERENCES roles(id),
            new_role INTEGER REFERENCES roles(id),
            old_division INTEGER REFERENCES divisions(id),
            new_division INTEGER REFERENCES divisions(id),
            old_salary NUMERIC(14, 2),
            new_salary NUMERIC(14, 2),
            old_status TEXT,
            new_status TEXT,
            effective_date DATE NOT NULL DEFAULT CURRENT_DATE,
            reason TEXT DEFAULT '',
            notes TEXT DEFAULT '',
            created_by INTEGER REFERENCES users(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            category TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT,
            data JSONB DEFAULT '{}'::jsonb,
            is_read BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approvals_request ON approvals(request_type, request_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approvals_approver ON approvals(approver_id, status)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_account_requests_status ON account_requests(status, created_at DESC)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_employee_history_user ON employee_history(user_id, effective_date DESC)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, is_read)')

    # Seed roles; existing rows keep their (possibly edited) permissions
    for name, level in DEFAULT_ROLE_HIERARCHY.items():
        cursor.execute('''
            INSERT INTO roles (name, hierarchy_level, permissions)
            VALUES (%s, %s, %s::jsonb)
            ON CONFLICT (name) DO NOTHING
        ''', (name, level, json.dumps(ROLE_PERMISSIONS.get(name, []))))
