"""
RoleGate - Access Store (SQLite)

Permission Catalog + Grant Store.

Features:
- Permission catalog with URL templates and a change counter
- Five strongly-typed grant tables, one per resource class
- Soft deactivation: grant rows are toggled, never deleted
- Explicit transactions (BEGIN IMMEDIATE) for bulk synchronization
- sqlite3 errors surfaced as StoreFailure
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from core.access.exceptions import StoreFailure
from core.access.models import (
    RESOURCE_CLASSES,
    Grant,
    Permission,
    ResourceClass,
    Role,
    Subject,
)
from core.utils.logging_utils import get_component_logger


# =====================================================
# LOGGER SETUP
# =====================================================

logger = get_component_logger("AccessStore", component="store")


# =====================================================
# SCHEMA
# =====================================================

BASE_SCHEMA = """
CREATE TABLE IF NOT EXISTS role (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role_name TEXT NOT NULL UNIQUE,
    active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER,
    updated_by INTEGER,
    created_date TEXT NOT NULL,
    updated_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS app_user (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    role_id INTEGER NOT NULL REFERENCES role(id),
    active INTEGER NOT NULL DEFAULT 1,
    created_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS permission (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    permission_name TEXT NOT NULL,
    permission_code TEXT UNIQUE,
    permission_url TEXT,
    http_method TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER,
    updated_by INTEGER,
    created_date TEXT NOT NULL,
    updated_date TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_permission_url ON permission (permission_url);

CREATE TABLE IF NOT EXISTS menu (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    menu_name TEXT NOT NULL UNIQUE,
    menu_url TEXT,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS sub_menu (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    menu_id INTEGER REFERENCES menu(id),
    menu_name TEXT NOT NULL,
    menu_url TEXT,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS topic (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_name TEXT NOT NULL,
    description TEXT,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS question (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_id INTEGER REFERENCES topic(id),
    question TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS catalog_meta (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    version INTEGER NOT NULL
);

INSERT OR IGNORE INTO catalog_meta (id, version) VALUES (1, 0);

CREATE TRIGGER IF NOT EXISTS permission_after_insert AFTER INSERT ON permission
BEGIN
    UPDATE catalog_meta SET version = version + 1 WHERE id = 1;
END;

CREATE TRIGGER IF NOT EXISTS permission_after_update AFTER UPDATE ON permission
BEGIN
    UPDATE catalog_meta SET version = version + 1 WHERE id = 1;
END;

CREATE TRIGGER IF NOT EXISTS permission_after_delete AFTER DELETE ON permission
BEGIN
    UPDATE catalog_meta SET version = version + 1 WHERE id = 1;
END;
"""

GRANT_TABLE_TEMPLATE = """
CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role_id INTEGER NOT NULL REFERENCES role(id),
    {column} INTEGER NOT NULL,
    active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER,
    updated_by INTEGER,
    created_date TEXT NOT NULL,
    updated_date TEXT NOT NULL,
    UNIQUE (role_id, {column})
);
"""

# Resource table and the columns exposed by detail views.
DETAIL_COLUMNS = {
    ResourceClass.PERMISSION: ("permission", ("permission_name", "permission_code", "permission_url")),
    ResourceClass.MENU: ("menu", ("menu_name", "menu_url")),
    ResourceClass.SUB_MENU: ("sub_menu", ("menu_name", "menu_url")),
    ResourceClass.TOPIC: ("topic", ("topic_name", "description")),
    ResourceClass.QUESTION: ("question", ("question", "topic_id")),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _permission_from_row(row) -> Permission:
    return Permission(
        id=row["id"],
        name=row["permission_name"],
        code=row["permission_code"],
        url_template=row["permission_url"],
        http_method=row["http_method"],
        active=bool(row["active"]),
    )


class AccessStore:

    def __init__(self, db_path: str, timeout: float = 5.0):

        self.db_path = os.path.abspath(db_path)
        self.timeout = timeout

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.init_schema()

        logger.info("Access store initialized at: %s", self.db_path)

    # =====================================================
    # CONNECTIONS
    # =====================================================

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _store_errors(self, action: str):
        try:
            yield
        except sqlite3.Error as exc:
            logger.exception("Store failure while %s", action)
            raise StoreFailure(f"Store failure while {action}: {exc}") from exc

    @contextmanager
    def _reader(self, conn: Optional[sqlite3.Connection], action: str):
        with self._store_errors(action):
            if conn is not None:
                yield conn
            else:
                with self._connect() as own:
                    yield own

    @contextmanager
    def transaction(self):
        """
        One write transaction. Takes the database write lock up front so a
        concurrent reader sees either all of it or none of it.
        """

        with self._store_errors("opening transaction"):
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row

        try:
            with self._store_errors("beginning transaction"):
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                # SQLite may already have rolled back on its own (SQLITE_FULL, IOERR)
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            with self._store_errors("committing transaction"):
                conn.execute("COMMIT")
        finally:
            conn.close()

    # =====================================================
    # SCHEMA
    # =====================================================

    def init_schema(self):

        with self._store_errors("creating schema"), self._connect() as conn:
            conn.executescript(BASE_SCHEMA)
            for resource_class in RESOURCE_CLASSES:
                conn.executescript(GRANT_TABLE_TEMPLATE.format(
                    table=resource_class.grant_table,
                    column=resource_class.resource_column,
                ))

    # =====================================================
    # PERMISSION CATALOG
    # =====================================================

    def find_active_permissions_by_url(self, url: str) -> List[Permission]:
        """Active permissions whose stored URL equals `url`, oldest first."""

        with self._reader(None, "looking up permission by url") as conn:
            rows = conn.execute(
                "SELECT * FROM permission WHERE permission_url = ? AND active = 1 "
                "ORDER BY id",
                (url,)
            ).fetchall()

        return [_permission_from_row(row) for row in rows]

    def list_active_permissions(self) -> List[Permission]:

        with self._reader(None, "listing permissions") as conn:
            rows = conn.execute(
                "SELECT * FROM permission WHERE active = 1 ORDER BY id"
            ).fetchall()

        return [_permission_from_row(row) for row in rows]

    def find_active_permission_by_code(self, code: str) -> Optional[Permission]:

        with self._reader(None, "looking up permission by code") as conn:
            row = conn.execute(
                "SELECT * FROM permission WHERE permission_code = ? AND active = 1",
                (code,)
            ).fetchone()

        return _permission_from_row(row) if row else None

    def find_permission_by_code(self, code: str) -> Optional[Permission]:
        """Lookup by code that also returns deactivated permissions."""

        with self._reader(None, "looking up permission by code") as conn:
            row = conn.execute(
                "SELECT * FROM permission WHERE permission_code = ?",
                (code,)
            ).fetchone()

        return _permission_from_row(row) if row else None

    def catalog_version(self) -> int:

        with self._reader(None, "reading catalog version") as conn:
            row = conn.execute("SELECT version FROM catalog_meta WHERE id = 1").fetchone()

        return row["version"] if row else 0

    # =====================================================
    # ROLES / SUBJECTS
    # =====================================================

    def get_role(self, role_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Role]:

        with self._reader(conn, "loading role") as c:
            row = c.execute(
                "SELECT id, role_name, active FROM role WHERE id = ?", (role_id,)
            ).fetchone()

        if not row:
            return None
        return Role(id=row["id"], name=row["role_name"], active=bool(row["active"]))

    def get_role_by_name(self, name: str) -> Optional[Role]:

        with self._reader(None, "loading role by name") as conn:
            row = conn.execute(
                "SELECT id, role_name, active FROM role WHERE role_name = ?", (name,)
            ).fetchone()

        if not row:
            return None
        return Role(id=row["id"], name=row["role_name"], active=bool(row["active"]))

    def get_user_id(self, username: str) -> Optional[int]:

        with self._reader(None, "loading user by name") as conn:
            row = conn.execute(
                "SELECT id FROM app_user WHERE username = ?", (username,)
            ).fetchone()

        return row["id"] if row else None

    def get_subject(self, user_id) -> Optional[Subject]:
        """
        Load the user's identity with its role. `active` is false when either
        the user or the role is inactive.
        """

        with self._reader(None, "loading subject") as conn:
            row = conn.execute(
                "SELECT u.id AS user_id, u.role_id, u.active AS user_active, "
                "r.role_name, r.active AS role_active "
                "FROM app_user u JOIN role r ON r.id = u.role_id WHERE u.id = ?",
                (user_id,)
            ).fetchone()

        if not row:
            return None

        return Subject(
            user_id=row["user_id"],
            role_id=row["role_id"],
            role_name=row["role_name"],
            active=bool(row["user_active"]) and bool(row["role_active"]),
        )

    # =====================================================
    # GRANTS (READ)
    # =====================================================

    def has_active_grant(self, resource_class: ResourceClass, role_id: int, resource_id: int) -> bool:
        """
        A grant is in effect when the grant row and the role are active and,
        for permission grants, the permission is active too.
        """

        table = resource_class.grant_table
        column = resource_class.resource_column

        query = (
            f"SELECT 1 FROM {table} g JOIN role r ON r.id = g.role_id "
        )
        if resource_class is ResourceClass.PERMISSION:
            query += "JOIN permission p ON p.id = g.permission_id AND p.active = 1 "
        query += (
            f"WHERE g.role_id = ? AND g.{column} = ? AND g.active = 1 "
            "AND r.active = 1 LIMIT 1"
        )

        with self._reader(None, f"checking {table} grant") as conn:
            row = conn.execute(query, (role_id, resource_id)).fetchone()

        return row is not None

    def active_grant_ids(
        self,
        resource_class: ResourceClass,
        role_id: int,
        conn: Optional[sqlite3.Connection] = None
    ) -> List[int]:

        table = resource_class.grant_table
        column = resource_class.resource_column

        with self._reader(conn, f"reading {table} grants") as c:
            rows = c.execute(
                f"SELECT {column} FROM {table} WHERE role_id = ? AND active = 1 "
                f"ORDER BY {column}",
                (role_id,)
            ).fetchall()

        return [row[0] for row in rows]

    def missing_resource_ids(
        self,
        resource_class: ResourceClass,
        ids: Iterable[int],
        conn: Optional[sqlite3.Connection] = None
    ) -> List[int]:
        """Ids with no row in the resource table of their class."""

        wanted = sorted(set(ids))
        if not wanted:
            return []

        resource_table = DETAIL_COLUMNS[resource_class][0]
        placeholders = ", ".join("?" for _ in wanted)

        with self._reader(conn, f"checking {resource_table} ids") as c:
            rows = c.execute(
                f"SELECT id FROM {resource_table} WHERE id IN ({placeholders})",
                wanted
            ).fetchall()

        found = {row[0] for row in rows}
        return [resource_id for resource_id in wanted if resource_id not in found]

    def list_grants(self, resource_class: ResourceClass, role_id: int) -> List[Grant]:
        """All grant rows for the role, active or not."""

        table = resource_class.grant_table
        column = resource_class.resource_column

        with self._reader(None, f"listing {table} rows") as conn:
            rows = conn.execute(
                f"SELECT role_id, {column}, active FROM {table} WHERE role_id = ? "
                f"ORDER BY {column}",
                (role_id,)
            ).fetchall()

        return [
            Grant(
                role_id=row["role_id"],
                resource_class=resource_class,
                resource_id=row[column],
                active=bool(row["active"]),
            )
            for row in rows
        ]

    def grant_details(self, resource_class: ResourceClass, role_id: int) -> List[Dict]:

        table = resource_class.grant_table
        column = resource_class.resource_column
        resource_table, columns = DETAIL_COLUMNS[resource_class]
        selected = ", ".join(f"res.{name}" for name in columns)

        with self._reader(None, f"reading {table} details") as conn:
            rows = conn.execute(
                f"SELECT g.{column} AS id, {selected} FROM {table} g "
                f"LEFT JOIN {resource_table} res ON res.id = g.{column} "
                f"WHERE g.role_id = ? AND g.active = 1 ORDER BY g.{column}",
                (role_id,)
            ).fetchall()

        return [dict(row) for row in rows]

    # =====================================================
    # GRANTS (WRITE, inside a transaction)
    # =====================================================

    def activate_grants(
        self,
        conn: sqlite3.Connection,
        resource_class: ResourceClass,
        role_id: int,
        resource_ids: Iterable[int],
        actor_id: Optional[int] = None
    ) -> None:
        """
        Insert missing rows, reactivate inactive ones. Never duplicates.
        """

        table = resource_class.grant_table
        column = resource_class.resource_column
        now = _now()

        with self._store_errors(f"activating {table} grants"):
            conn.executemany(
                f"INSERT INTO {table} "
                f"(role_id, {column}, active, created_by, updated_by, created_date, updated_date) "
                "VALUES (?, ?, 1, ?, ?, ?, ?) "
                f"ON CONFLICT (role_id, {column}) DO UPDATE SET "
                "active = 1, updated_by = excluded.updated_by, "
                "updated_date = excluded.updated_date",
                [
                    (role_id, resource_id, actor_id, actor_id, now, now)
                    for resource_id in resource_ids
                ]
            )

    def deactivate_grants(
        self,
        conn: sqlite3.Connection,
        resource_class: ResourceClass,
        role_id: int,
        resource_ids: Iterable[int],
        actor_id: Optional[int] = None
    ) -> None:

        table = resource_class.grant_table
        column = resource_class.resource_column
        now = _now()

        with self._store_errors(f"deactivating {table} grants"):
            conn.executemany(
                f"UPDATE {table} SET active = 0, updated_by = ?, updated_date = ? "
                f"WHERE role_id = ? AND {column} = ?",
                [
                    (actor_id, now, role_id, resource_id)
                    for resource_id in resource_ids
                ]
            )

    # =====================================================
    # RECORD CREATION (seeding / administration)
    # =====================================================

    def _insert(self, query: str, params: tuple, action: str) -> int:
        with self._store_errors(action), self._connect() as conn:
            cursor = conn.execute(query, params)
            return cursor.lastrowid

    def create_role(self, name: str, active: bool = True, actor_id: Optional[int] = None) -> int:
        now = _now()
        return self._insert(
            "INSERT INTO role (role_name, active, created_by, updated_by, created_date, updated_date) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (name, int(active), actor_id, actor_id, now, now),
            "creating role"
        )

    def create_user(self, username: str, role_id: int, active: bool = True) -> int:
        return self._insert(
            "INSERT INTO app_user (username, role_id, active, created_date) VALUES (?, ?, ?, ?)",
            (username, role_id, int(active), _now()),
            "creating user"
        )

    def create_permission(
        self,
        name: str,
        url_template: Optional[str],
        code: Optional[str] = None,
        http_method: Optional[str] = None,
        active: bool = True,
        actor_id: Optional[int] = None
    ) -> int:
        now = _now()
        return self._insert(
            "INSERT INTO permission "
            "(permission_name, permission_code, permission_url, http_method, active, "
            "created_by, updated_by, created_date, updated_date) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                name,
                code,
                url_template,
                http_method.upper() if http_method else None,
                int(active),
                actor_id,
                actor_id,
                now,
                now,
            ),
            "creating permission"
        )

    def create_menu(self, name: str, url: Optional[str] = None) -> int:
        return self._insert(
            "INSERT INTO menu (menu_name, menu_url) VALUES (?, ?)",
            (name, url),
            "creating menu"
        )

    def create_sub_menu(self, menu_id: int, name: str, url: Optional[str] = None) -> int:
        return self._insert(
            "INSERT INTO sub_menu (menu_id, menu_name, menu_url) VALUES (?, ?, ?)",
            (menu_id, name, url),
            "creating sub menu"
        )

    def create_topic(self, name: str, description: Optional[str] = None) -> int:
        return self._insert(
            "INSERT INTO topic (topic_name, description) VALUES (?, ?)",
            (name, description),
            "creating topic"
        )

    def create_question(self, topic_id: int, text: str) -> int:
        return self._insert(
            "INSERT INTO question (topic_id, question) VALUES (?, ?)",
            (topic_id, text),
            "creating question"
        )

    def _set_active(self, table: str, record_id: int, active: bool) -> None:
        with self._store_errors(f"updating {table}"), self._connect() as conn:
            conn.execute(
                f"UPDATE {table} SET active = ? WHERE id = ?",
                (int(active), record_id)
            )

    def set_permission_active(self, permission_id: int, active: bool) -> None:
        self._set_active("permission", permission_id, active)

    def set_role_active(self, role_id: int, active: bool) -> None:
        self._set_active("role", role_id, active)

    def set_user_active(self, user_id: int, active: bool) -> None:
        self._set_active("app_user", user_id, active)
