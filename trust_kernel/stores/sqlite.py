"""
SQLite stores — durable adapters for the persistence ports.

Prototype: SQLite. Production: PostgreSQL with the same version-checked
updates. Every row read back is validated into its record model here, once,
so the kernel never sees an unvalidated shape.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import List, Optional

from trust_kernel.errors import Conflict
from trust_kernel.models.transfer import Transfer, TransferFilter, TransferState
from trust_kernel.models.trust import TrustRelationship, TrustState
from trust_kernel.models.wallet import WalletRecord


def connect(db_path: str = ":memory:") -> sqlite3.Connection:
    """Open a connection and create the schema if it doesn't exist."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    _init_schema(conn)
    return conn


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS wallet (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            salt TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS entity_trust (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_type TEXT NOT NULL,
            actor_entity_id INTEGER NOT NULL,
            originator_entity_id INTEGER NOT NULL,
            target_entity_id INTEGER NOT NULL,
            state TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1
        )
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_entity_trust_originator
        ON entity_trust(originator_entity_id)
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_entity_trust_target
        ON entity_trust(target_entity_id)
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS transfer (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            originator_entity_id INTEGER NOT NULL,
            source_entity_id INTEGER NOT NULL,
            destination_entity_id INTEGER NOT NULL,
            tokens_json TEXT NOT NULL DEFAULT '[]',
            state TEXT NOT NULL,
            created_at TEXT NOT NULL,
            closed_at TEXT,
            version INTEGER NOT NULL DEFAULT 1
        )
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_transfer_destination_state
        ON transfer(destination_entity_id, state)
    """)
    conn.commit()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SQLiteWalletStore:
    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def _deserialize(self, row: sqlite3.Row) -> WalletRecord:
        return WalletRecord.model_validate(dict(row))

    def get_by_id(self, wallet_id: int) -> Optional[WalletRecord]:
        row = self._conn.execute(
            "SELECT * FROM wallet WHERE id = ?", (wallet_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def get_by_name(self, name: str) -> Optional[WalletRecord]:
        row = self._conn.execute(
            "SELECT * FROM wallet WHERE name = ?", (name,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def create(self, record: WalletRecord) -> WalletRecord:
        try:
            cursor = self._conn.execute(
                "INSERT INTO wallet (name, password, salt, created_at) VALUES (?, ?, ?, ?)",
                (record.name, record.password, record.salt, datetime.now(timezone.utc).isoformat()),
            )
        except sqlite3.IntegrityError as e:
            raise Conflict(f"Wallet name '{record.name}' already exists") from e
        self._conn.commit()
        return self.get_by_id(cursor.lastrowid)


class SQLiteTrustStore:
    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = threading.Lock()

    def _deserialize(self, row: sqlite3.Row) -> TrustRelationship:
        return TrustRelationship.model_validate(dict(row))

    def _select(self, where: str, params: tuple) -> List[TrustRelationship]:
        rows = self._conn.execute(
            f"SELECT * FROM entity_trust WHERE {where} ORDER BY id", params
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def get_by_id(self, relationship_id: int) -> Optional[TrustRelationship]:
        row = self._conn.execute(
            "SELECT * FROM entity_trust WHERE id = ?", (relationship_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def get_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select("originator_entity_id = ?", (wallet_id,))

    def get_by_target_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select("target_entity_id = ?", (wallet_id,))

    def get_trusted_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select(
            "originator_entity_id = ? AND state = ?",
            (wallet_id, TrustState.TRUSTED.value),
        )

    def create(self, record: TrustRelationship) -> TrustRelationship:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO entity_trust (
                    request_type, actor_entity_id, originator_entity_id,
                    target_entity_id, state, created_at, updated_at, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    record.request_type.value,
                    record.actor_entity_id,
                    record.originator_entity_id,
                    record.target_entity_id,
                    record.state.value,
                    now,
                    now,
                ),
            )
            self._conn.commit()
        return self.get_by_id(cursor.lastrowid)

    def update(self, record: TrustRelationship) -> TrustRelationship:
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE entity_trust SET
                    request_type = ?, actor_entity_id = ?, originator_entity_id = ?,
                    target_entity_id = ?, state = ?, updated_at = ?, version = version + 1
                WHERE id = ? AND version = ?
                """,
                (
                    record.request_type.value,
                    record.actor_entity_id,
                    record.originator_entity_id,
                    record.target_entity_id,
                    record.state.value,
                    datetime.now(timezone.utc).isoformat(),
                    record.id,
                    record.version,
                ),
            )
            self._conn.commit()
        if cursor.rowcount == 0:
            raise Conflict(
                f"Trust relationship {record.id} was modified concurrently, reload and retry"
            )
        return self.get_by_id(record.id)


class SQLiteTransferStore:
    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = threading.Lock()

    def _deserialize(self, row: sqlite3.Row) -> Transfer:
        data = dict(row)
        data["tokens"] = json.loads(data.pop("tokens_json"))
        return Transfer.model_validate(data)

    def get_by_id(self, transfer_id: int) -> Optional[Transfer]:
        row = self._conn.execute(
            "SELECT * FROM transfer WHERE id = ?", (transfer_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def get_pending_transfers(self, wallet_id: int) -> List[Transfer]:
        rows = self._conn.execute(
            "SELECT * FROM transfer WHERE destination_entity_id = ? AND state = ? ORDER BY id",
            (wallet_id, TransferState.PENDING.value),
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def get_by_filter(self, filter: TransferFilter) -> List[Transfer]:
        clauses = []
        params: list = []
        if filter.state is not None:
            clauses.append("state = ?")
            params.append(filter.state.value)
        if filter.involving_entity_id is not None:
            clauses.append(
                "(originator_entity_id = ? OR source_entity_id = ? OR destination_entity_id = ?)"
            )
            params.extend([filter.involving_entity_id] * 3)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT * FROM transfer {where} ORDER BY id LIMIT ? OFFSET ?",
            (*params, filter.limit, filter.offset),
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def create(self, record: Transfer) -> Transfer:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO transfer (
                    originator_entity_id, source_entity_id, destination_entity_id,
                    tokens_json, state, created_at, closed_at, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    record.originator_entity_id,
                    record.source_entity_id,
                    record.destination_entity_id,
                    json.dumps(record.tokens),
                    record.state.value,
                    datetime.now(timezone.utc).isoformat(),
                    _iso(record.closed_at),
                ),
            )
            self._conn.commit()
        return self.get_by_id(cursor.lastrowid)

    def update(self, record: Transfer) -> Transfer:
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE transfer SET
                    originator_entity_id = ?, source_entity_id = ?, destination_entity_id = ?,
                    tokens_json = ?, state = ?, closed_at = ?, version = version + 1
                WHERE id = ? AND version = ?
                """,
                (
                    record.originator_entity_id,
                    record.source_entity_id,
                    record.destination_entity_id,
                    json.dumps(record.tokens),
                    record.state.value,
                    _iso(record.closed_at),
                    record.id,
                    record.version,
                ),
            )
            self._conn.commit()
        if cursor.rowcount == 0:
            raise Conflict(
                f"Transfer {record.id} was modified concurrently, reload and retry"
            )
        return self.get_by_id(record.id)
