"""
Sequential schema migrations

Migrations are applied in order, each inside its own transaction together
with the row recording it in the `migrations` table. A migration whose
target schema is already present is recorded without touching the schema.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Set

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from expense_api.core.utils import now_rfc3339

logger = logging.getLogger(__name__)

EXISTING_SCHEMA_CHECKSUM = "existing_schema"
LEGACY_USER_ID = "legacy-local-user"

DEFAULT_CATEGORIES = [
    ("Transportation", "🚗"),
    ("Meals", "🍽️"),
    ("Communication", "📱"),
    ("Supplies", "📦"),
    ("Entertainment", "🤝"),
    ("Other", "📋"),
]
FALLBACK_CATEGORY = "Other"


class MigrationError(Exception):
    """A migration failed and its transaction was rolled back"""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"Migration {name} failed: {message}")


@dataclass
class Migration:
    name: str
    description: str
    statements: Sequence[str]
    apply: Callable[[Connection, "Migration"], bool]

    @property
    def checksum(self) -> str:
        return hashlib.sha256(";\n".join(self.statements).encode("utf-8")).hexdigest()

    def execute_statements(self, connection: Connection) -> None:
        for statement in self.statements:
            connection.exec_driver_sql(statement)


@dataclass
class MigrationReport:
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    already_applied: List[str] = field(default_factory=list)
    durations_ms: Dict[str, float] = field(default_factory=dict)

    @property
    def total_duration_ms(self) -> float:
        return round(sum(self.durations_ms.values()), 2)

    def to_dict(self) -> Dict:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "already_applied": self.already_applied,
            "durations_ms": self.durations_ms,
            "total_duration_ms": self.total_duration_ms,
        }


def table_exists(connection: Connection, table: str) -> bool:
    row = connection.execute(
        text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"),
        {"name": table},
    ).first()
    return row is not None


def column_names(connection: Connection, table: str) -> Set[str]:
    return {row[1] for row in connection.exec_driver_sql(f'PRAGMA table_info("{table}")')}


# 001 ---------------------------------------------------------------------

BASIC_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS expenses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        amount REAL NOT NULL,
        category TEXT NOT NULL,
        description TEXT,
        receipt_path TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        amount REAL NOT NULL,
        billing_cycle TEXT NOT NULL CHECK (billing_cycle IN ('monthly', 'annual')),
        start_date TEXT NOT NULL,
        category TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        receipt_path TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category)",
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_is_active ON subscriptions(is_active)",
]


def _create_basic_schema(connection: Connection, migration: Migration) -> bool:
    if table_exists(connection, "expenses"):
        logger.info("expenses table already exists, recording basic schema migration only")
        return False
    migration.execute_statements(connection)
    return True


# 002 ---------------------------------------------------------------------

USER_AUTH_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        google_id TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL,
        name TEXT NOT NULL,
        picture_url TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_users_google_id ON users(google_id)",
    "CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)",
    """CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        expires_at TEXT NOT NULL,
        created_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)",
]


def _add_user_authentication(connection: Connection, migration: Migration) -> bool:
    changed = not (table_exists(connection, "users") and table_exists(connection, "sessions"))
    migration.execute_statements(connection)

    for table in ("expenses", "subscriptions"):
        if "user_id" not in column_names(connection, table):
            connection.exec_driver_sql(
                f"ALTER TABLE {table} ADD COLUMN user_id TEXT REFERENCES users(id) ON DELETE CASCADE"
            )
            changed = True
        connection.exec_driver_sql(
            f"CREATE INDEX IF NOT EXISTS idx_{table}_user_id ON {table}(user_id)"
        )

    ownerless = 0
    for table in ("expenses", "subscriptions"):
        ownerless += connection.exec_driver_sql(
            f"SELECT COUNT(*) FROM {table} WHERE user_id IS NULL"
        ).scalar()

    if ownerless:
        timestamp = now_rfc3339()
        connection.execute(
            text(
                "INSERT OR IGNORE INTO users (id, google_id, email, name, picture_url, created_at, updated_at) "
                "VALUES (:id, :google_id, :email, :name, NULL, :ts, :ts)"
            ),
            {
                "id": LEGACY_USER_ID,
                "google_id": LEGACY_USER_ID,
                "email": "legacy@localhost",
                "name": "Legacy User",
                "ts": timestamp,
            },
        )
        for table in ("expenses", "subscriptions"):
            connection.execute(
                text(f"UPDATE {table} SET user_id = :user_id WHERE user_id IS NULL"),
                {"user_id": LEGACY_USER_ID},
            )
        logger.info(f"Assigned {ownerless} ownerless rows to {LEGACY_USER_ID}")
        changed = True

    return changed


# 003 ---------------------------------------------------------------------

RECEIPT_URL_SCHEMA = [
    """CREATE TABLE expenses_new (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        amount REAL NOT NULL,
        category TEXT NOT NULL,
        description TEXT,
        receipt_url TEXT CHECK (receipt_url IS NULL OR receipt_url LIKE 'https://%'),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """INSERT INTO expenses_new (id, user_id, date, amount, category, description, receipt_url, created_at, updated_at)
        SELECT id, user_id, date, amount, category, description,
               CASE WHEN receipt_path LIKE 'https://%' THEN receipt_path ELSE NULL END,
               created_at, updated_at
        FROM expenses""",
    "DROP TABLE expenses",
    "ALTER TABLE expenses_new RENAME TO expenses",
    "CREATE INDEX IF NOT EXISTS idx_expenses_user_id ON expenses(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category)",
]


def _migrate_receipt_url(connection: Connection, migration: Migration) -> bool:
    columns = column_names(connection, "expenses")
    if "receipt_url" in columns and "receipt_path" not in columns:
        logger.info("expenses.receipt_url already present, recording receipt migration only")
        return False

    dropped = connection.exec_driver_sql(
        "SELECT COUNT(*) FROM expenses "
        "WHERE receipt_path IS NOT NULL AND receipt_path NOT LIKE 'https://%'"
    ).scalar()
    if dropped:
        logger.warning(f"{dropped} non-https receipt paths cleared while migrating to receipt_url")

    migration.execute_statements(connection)
    return True


# 004 ---------------------------------------------------------------------

CATEGORIES_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        icon TEXT NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_categories_display_order ON categories(display_order)",
    "CREATE INDEX IF NOT EXISTS idx_categories_is_active ON categories(is_active)",
]


def _add_categories_table(connection: Connection, migration: Migration) -> bool:
    migration.execute_statements(connection)

    timestamp = now_rfc3339()
    for order, (name, icon) in enumerate(DEFAULT_CATEGORIES, start=1):
        connection.execute(
            text(
                "INSERT OR IGNORE INTO categories (name, icon, display_order, is_active, created_at, updated_at) "
                "VALUES (:name, :icon, :order, 1, :ts, :ts)"
            ),
            {"name": name, "icon": icon, "order": order, "ts": timestamp},
        )

    for table in ("expenses", "subscriptions"):
        if "category_id" not in column_names(connection, table):
            connection.exec_driver_sql(
                f"ALTER TABLE {table} ADD COLUMN category_id INTEGER REFERENCES categories(id)"
            )
        connection.exec_driver_sql(
            f"UPDATE {table} SET category_id = "
            f"(SELECT id FROM categories WHERE categories.name = {table}.category) "
            f"WHERE category_id IS NULL"
        )
        connection.execute(
            text(
                f"UPDATE {table} SET category_id = (SELECT id FROM categories WHERE name = :fallback) "
                f"WHERE category_id IS NULL"
            ),
            {"fallback": FALLBACK_CATEGORY},
        )
        connection.exec_driver_sql(
            f"CREATE INDEX IF NOT EXISTS idx_{table}_category_id ON {table}(category_id)"
        )
    return True


MIGRATIONS: List[Migration] = [
    Migration(
        "001_create_basic_schema",
        "Create expenses and subscriptions tables",
        BASIC_SCHEMA,
        _create_basic_schema,
    ),
    Migration(
        "002_add_user_authentication",
        "Add users and sessions, scope expenses and subscriptions by user",
        USER_AUTH_SCHEMA,
        _add_user_authentication,
    ),
    Migration(
        "003_migrate_receipt_url",
        "Replace expenses.receipt_path with an https-only receipt_url",
        RECEIPT_URL_SCHEMA,
        _migrate_receipt_url,
    ),
    Migration(
        "004_add_categories_table",
        "Add categories table and category_id references",
        CATEGORIES_SCHEMA,
        _add_categories_table,
    ),
]

CREATE_MIGRATIONS_TABLE = """CREATE TABLE IF NOT EXISTS migrations (
    name TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL,
    checksum TEXT NOT NULL
)"""


def _applied_names(connection: Connection) -> Set[str]:
    return {row[0] for row in connection.exec_driver_sql("SELECT name FROM migrations")}


def run_migrations(engine: Engine, migrations: Sequence[Migration] = MIGRATIONS) -> MigrationReport:
    """
    Apply every pending migration in order

    Raises MigrationError on the first failure; migrations before it stay
    committed, the failing one is rolled back and later ones are not run.
    """
    report = MigrationReport()

    with engine.begin() as connection:
        connection.exec_driver_sql(CREATE_MIGRATIONS_TABLE)
        applied = _applied_names(connection)

    for migration in migrations:
        if migration.name in applied:
            report.already_applied.append(migration.name)
            continue

        start_time = time.time()
        try:
            with engine.begin() as connection:
                changed = migration.apply(connection, migration)
                connection.execute(
                    text("INSERT INTO migrations (name, applied_at, checksum) VALUES (:name, :applied_at, :checksum)"),
                    {
                        "name": migration.name,
                        "applied_at": now_rfc3339(),
                        "checksum": migration.checksum if changed else EXISTING_SCHEMA_CHECKSUM,
                    },
                )
        except Exception as e:
            logger.error(f"Migration {migration.name} failed, rolled back: {e}")
            raise MigrationError(migration.name, str(e)) from e

        duration_ms = round((time.time() - start_time) * 1000, 2)
        report.durations_ms[migration.name] = duration_ms
        if changed:
            report.applied.append(migration.name)
            logger.info(f"Applied migration {migration.name} in {duration_ms}ms")
        else:
            report.skipped.append(migration.name)

    return report


def get_migration_status(engine: Engine, migrations: Sequence[Migration] = MIGRATIONS) -> Dict:
    with engine.connect() as connection:
        if not table_exists(connection, "migrations"):
            rows = []
        else:
            rows = connection.exec_driver_sql(
                "SELECT name, applied_at, checksum FROM migrations ORDER BY name"
            ).fetchall()

    applied = [{"name": r[0], "applied_at": r[1], "checksum": r[2]} for r in rows]
    applied_names = {r["name"] for r in applied}
    pending = [m.name for m in migrations if m.name not in applied_names]
    return {
        "applied": applied,
        "pending": pending,
        "up_to_date": not pending,
    }
