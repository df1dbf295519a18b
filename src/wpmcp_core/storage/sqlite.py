"""SQLite-based trust store.

Persists data to disk. Statements run on a single-worker thread pool, and
every counter change is one conditional UPDATE so concurrent requests can
never overshoot a limit.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from wpmcp_core.auth.models import ApiKeyRecord, Connection, Customer
from wpmcp_core.errors import create_error
from wpmcp_core.types import ApiKeyStatus, ConnectionStatus, TenantStatus, Tier
from wpmcp_core.usage.models import IncrementResult, UsageCounter
from wpmcp_core.webhooks.events import WebhookEventType
from wpmcp_core.webhooks.models import Webhook, WebhookDelivery

from .base import TrustStore

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    tier TEXT NOT NULL DEFAULT 'free',
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS connections (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    encrypted_username TEXT NOT NULL,
    encrypted_password TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS api_keys (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    connection_id TEXT NOT NULL REFERENCES connections(id) ON DELETE CASCADE,
    key_hash TEXT NOT NULL UNIQUE,
    key_prefix TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT 'Default',
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    last_used_at TEXT
);

CREATE TABLE IF NOT EXISTS usage_monthly (
    tenant_id TEXT NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    period TEXT NOT NULL,
    request_count INTEGER NOT NULL DEFAULT 0,
    success_count INTEGER NOT NULL DEFAULT 0,
    error_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (tenant_id, period)
);

CREATE TABLE IF NOT EXISTS webhooks (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    secret TEXT NOT NULL,
    events TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    failure_count INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    last_triggered_at TEXT,
    last_status_code INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS webhook_deliveries (
    id TEXT PRIMARY KEY,
    webhook_id TEXT NOT NULL,
    tenant_id TEXT,
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL,
    status_code INTEGER,
    response_body TEXT,
    response_time_ms INTEGER,
    error TEXT,
    attempt_number INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_connections_tenant ON connections(tenant_id);
CREATE INDEX IF NOT EXISTS idx_api_keys_tenant ON api_keys(tenant_id);
CREATE INDEX IF NOT EXISTS idx_webhooks_tenant ON webhooks(tenant_id);
CREATE INDEX IF NOT EXISTS idx_deliveries_webhook ON webhook_deliveries(webhook_id, created_at);
"""


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteTrustStore(TrustStore):
    """SQLite-based trust store."""

    def __init__(self, db_path: str) -> None:
        """Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self._db_path = db_path
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._conn: sqlite3.Connection | None = None

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize SQLite database schema."""
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    @property
    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise create_error("INTERNAL_ERROR", detail="SQLite store is closed")
        return self._conn

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Run one write statement. Returns the affected row count."""
        cursor = self._db.execute(sql, params)
        self._db.commit()
        return cursor.rowcount

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        return self._db.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        return self._db.execute(sql, params).fetchall()

    async def close(self) -> None:
        if self._conn:
            await self._run(self._conn.close)
            self._conn = None
        self._executor.shutdown(wait=False)

    # ── Customers ──

    async def create_customer(self, customer: Customer) -> None:
        await self._run(
            self._execute,
            "INSERT INTO customers (id, email, name, tier, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                customer.id,
                customer.email,
                customer.name,
                customer.tier.value,
                customer.status.value,
                _ts(customer.created_at),
                _ts(customer.updated_at),
            ),
        )

    async def get_customer(self, customer_id: str) -> Customer | None:
        row = await self._run(self._fetchone, "SELECT * FROM customers WHERE id = ?", (customer_id,))
        return self._row_to_customer(row) if row else None

    async def update_customer(self, customer: Customer) -> None:
        customer.updated_at = datetime.now(UTC)
        await self._run(
            self._execute,
            "UPDATE customers SET email = ?, name = ?, tier = ?, status = ?, updated_at = ? "
            "WHERE id = ?",
            (
                customer.email,
                customer.name,
                customer.tier.value,
                customer.status.value,
                _ts(customer.updated_at),
                customer.id,
            ),
        )

    async def delete_customer(self, customer_id: str) -> bool:
        return await self._run(self._delete_customer_sync, customer_id)

    def _delete_customer_sync(self, customer_id: str) -> bool:
        conn = self._db
        with conn:
            # Deliveries have no FK so that deleting a webhook keeps its history
            conn.execute(
                "DELETE FROM webhook_deliveries WHERE tenant_id = ? "
                "OR webhook_id IN (SELECT id FROM webhooks WHERE tenant_id = ?)",
                (customer_id, customer_id),
            )
            cursor = conn.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_customer(row: sqlite3.Row) -> Customer:
        return Customer(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            tier=Tier(row["tier"]),
            status=TenantStatus(row["status"]),
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    # ── Connections ──

    async def create_connection(
        self, connection: Connection, max_per_tenant: int | None = None
    ) -> bool:
        # A negative cap means unlimited
        cap = -1 if max_per_tenant is None else max_per_tenant
        affected = await self._run(
            self._execute,
            "INSERT INTO connections (id, tenant_id, name, url, encrypted_username, "
            "encrypted_password, status, created_at) SELECT ?, ?, ?, ?, ?, ?, ?, ? "
            "WHERE ? < 0 OR (SELECT COUNT(*) FROM connections WHERE tenant_id = ?) < ?",
            (
                connection.id,
                connection.tenant_id,
                connection.name,
                connection.url,
                connection.encrypted_username,
                connection.encrypted_password,
                connection.status.value,
                _ts(connection.created_at),
                cap,
                connection.tenant_id,
                cap,
            ),
        )
        return affected > 0

    async def get_connection(self, connection_id: str) -> Connection | None:
        row = await self._run(
            self._fetchone, "SELECT * FROM connections WHERE id = ?", (connection_id,)
        )
        return self._row_to_connection(row) if row else None

    async def list_connections(self, tenant_id: str) -> list[Connection]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM connections WHERE tenant_id = ? ORDER BY created_at",
            (tenant_id,),
        )
        return [self._row_to_connection(r) for r in rows]

    async def count_connections(self, tenant_id: str) -> int:
        row = await self._run(
            self._fetchone, "SELECT COUNT(*) FROM connections WHERE tenant_id = ?", (tenant_id,)
        )
        return int(row[0]) if row else 0

    async def delete_connection(self, connection_id: str) -> bool:
        affected = await self._run(
            self._execute, "DELETE FROM connections WHERE id = ?", (connection_id,)
        )
        return affected > 0

    @staticmethod
    def _row_to_connection(row: sqlite3.Row) -> Connection:
        return Connection(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            url=row["url"],
            encrypted_username=row["encrypted_username"],
            encrypted_password=row["encrypted_password"],
            status=ConnectionStatus(row["status"]),
            created_at=_dt(row["created_at"]),
        )

    # ── API keys ──

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        await self._run(
            self._execute,
            "INSERT INTO api_keys (id, tenant_id, connection_id, key_hash, key_prefix, name, "
            "status, created_at, last_used_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.tenant_id,
                record.connection_id,
                record.key_hash,
                record.key_prefix,
                record.name,
                record.status.value,
                _ts(record.created_at),
                _ts(record.last_used_at),
            ),
        )

    async def get_api_key(self, key_id: str) -> ApiKeyRecord | None:
        row = await self._run(self._fetchone, "SELECT * FROM api_keys WHERE id = ?", (key_id,))
        return self._row_to_api_key(row) if row else None

    async def get_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None:
        row = await self._run(
            self._fetchone, "SELECT * FROM api_keys WHERE key_hash = ?", (key_hash,)
        )
        return self._row_to_api_key(row) if row else None

    async def list_api_keys(self, tenant_id: str) -> list[ApiKeyRecord]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM api_keys WHERE tenant_id = ? ORDER BY created_at DESC",
            (tenant_id,),
        )
        return [self._row_to_api_key(r) for r in rows]

    async def set_api_key_status(self, key_id: str, status: ApiKeyStatus) -> bool:
        affected = await self._run(
            self._execute, "UPDATE api_keys SET status = ? WHERE id = ?", (status.value, key_id)
        )
        return affected > 0

    async def touch_api_key(self, key_id: str, used_at: datetime) -> None:
        await self._run(
            self._execute,
            "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
            (_ts(used_at), key_id),
        )

    async def delete_api_key(self, key_id: str) -> bool:
        affected = await self._run(self._execute, "DELETE FROM api_keys WHERE id = ?", (key_id,))
        return affected > 0

    @staticmethod
    def _row_to_api_key(row: sqlite3.Row) -> ApiKeyRecord:
        return ApiKeyRecord(
            id=row["id"],
            tenant_id=row["tenant_id"],
            connection_id=row["connection_id"],
            key_hash=row["key_hash"],
            key_prefix=row["key_prefix"],
            name=row["name"],
            status=ApiKeyStatus(row["status"]),
            created_at=_dt(row["created_at"]),
            last_used_at=_dt(row["last_used_at"]),
        )

    # ── Usage ──

    def _ensure_usage_sync(self, tenant_id: str, period: str) -> None:
        now = _now()
        self._execute(
            "INSERT OR IGNORE INTO usage_monthly (tenant_id, period, created_at, updated_at) "
            "VALUES (?, ?, ?, ?)",
            (tenant_id, period, now, now),
        )

    async def ensure_usage(self, tenant_id: str, period: str) -> UsageCounter:
        def _sync() -> UsageCounter:
            self._ensure_usage_sync(tenant_id, period)
            row = self._fetchone(
                "SELECT * FROM usage_monthly WHERE tenant_id = ? AND period = ?",
                (tenant_id, period),
            )
            return self._row_to_usage(row)

        return await self._run(_sync)

    async def increment_usage_if_below(
        self, tenant_id: str, period: str, limit: int
    ) -> IncrementResult:
        def _sync() -> IncrementResult:
            self._ensure_usage_sync(tenant_id, period)
            applied = self._execute(
                "UPDATE usage_monthly SET request_count = request_count + 1, updated_at = ? "
                "WHERE tenant_id = ? AND period = ? AND request_count < ?",
                (_now(), tenant_id, period, limit),
            )
            row = self._fetchone(
                "SELECT request_count FROM usage_monthly WHERE tenant_id = ? AND period = ?",
                (tenant_id, period),
            )
            return IncrementResult(applied=applied > 0, request_count=int(row[0]))

        return await self._run(_sync)

    async def record_usage_outcome(self, tenant_id: str, period: str, success: bool) -> None:
        column = "success_count" if success else "error_count"

        def _sync() -> None:
            self._ensure_usage_sync(tenant_id, period)
            self._execute(
                f"UPDATE usage_monthly SET {column} = {column} + 1, updated_at = ? "
                "WHERE tenant_id = ? AND period = ?",
                (_now(), tenant_id, period),
            )

        await self._run(_sync)

    async def get_usage(self, tenant_id: str, period: str) -> UsageCounter | None:
        row = await self._run(
            self._fetchone,
            "SELECT * FROM usage_monthly WHERE tenant_id = ? AND period = ?",
            (tenant_id, period),
        )
        return self._row_to_usage(row) if row else None

    async def list_usage(self, tenant_id: str, limit: int = 12) -> list[UsageCounter]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM usage_monthly WHERE tenant_id = ? ORDER BY period DESC LIMIT ?",
            (tenant_id, limit),
        )
        return [self._row_to_usage(r) for r in rows]

    async def reset_usage(self, tenant_id: str, period: str) -> None:
        def _sync() -> None:
            self._ensure_usage_sync(tenant_id, period)
            self._execute(
                "UPDATE usage_monthly SET request_count = 0, success_count = 0, "
                "error_count = 0, updated_at = ? WHERE tenant_id = ? AND period = ?",
                (_now(), tenant_id, period),
            )

        await self._run(_sync)

    @staticmethod
    def _row_to_usage(row: sqlite3.Row) -> UsageCounter:
        return UsageCounter(
            tenant_id=row["tenant_id"],
            period=row["period"],
            request_count=row["request_count"],
            success_count=row["success_count"],
            error_count=row["error_count"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    # ── Webhooks ──

    async def create_webhook(self, webhook: Webhook, max_per_tenant: int | None = None) -> bool:
        cap = -1 if max_per_tenant is None else max_per_tenant
        affected = await self._run(
            self._execute,
            "INSERT INTO webhooks (id, tenant_id, url, secret, events, is_active, failure_count, "
            "description, last_triggered_at, last_status_code, created_at, updated_at) "
            "SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ? "
            "WHERE (? < 0 OR (SELECT COUNT(*) FROM webhooks WHERE tenant_id = ?) < ?) "
            "AND NOT EXISTS (SELECT 1 FROM webhooks WHERE tenant_id = ? AND url = ?)",
            (
                webhook.id,
                webhook.tenant_id,
                webhook.url,
                webhook.secret,
                json.dumps([e.value for e in webhook.events]),
                int(webhook.is_active),
                webhook.failure_count,
                webhook.description,
                _ts(webhook.last_triggered_at),
                webhook.last_status_code,
                _ts(webhook.created_at),
                _ts(webhook.updated_at),
                cap,
                webhook.tenant_id,
                cap,
                webhook.tenant_id,
                webhook.url,
            ),
        )
        return affected > 0

    async def get_webhook(self, webhook_id: str) -> Webhook | None:
        row = await self._run(self._fetchone, "SELECT * FROM webhooks WHERE id = ?", (webhook_id,))
        return self._row_to_webhook(row) if row else None

    async def list_webhooks(self, tenant_id: str) -> list[Webhook]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM webhooks WHERE tenant_id = ? ORDER BY created_at DESC",
            (tenant_id,),
        )
        return [self._row_to_webhook(r) for r in rows]

    async def list_deliverable_webhooks(
        self, tenant_id: str, event_type: WebhookEventType, max_failures: int
    ) -> list[Webhook]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM webhooks WHERE tenant_id = ? AND is_active = 1 AND failure_count < ?",
            (tenant_id, max_failures),
        )
        hooks = [self._row_to_webhook(r) for r in rows]
        return [w for w in hooks if w.subscribes_to(event_type)]

    async def update_webhook(
        self,
        webhook_id: str,
        *,
        url: str | None = None,
        events: list[WebhookEventType] | None = None,
        description: str | None = None,
        secret: str | None = None,
    ) -> bool:
        changes: dict[str, Any] = {
            "url": url,
            "events": json.dumps([e.value for e in events]) if events is not None else None,
            "description": description,
            "secret": secret,
        }
        columns = [name for name, value in changes.items() if value is not None]
        assignments = "".join(f"{name} = ?, " for name in columns)
        params = tuple(changes[name] for name in columns)
        affected = await self._run(
            self._execute,
            f"UPDATE webhooks SET {assignments}updated_at = ? WHERE id = ?",
            (*params, _now(), webhook_id),
        )
        return affected > 0

    async def set_webhook_active(self, webhook_id: str, active: bool) -> bool:
        if active:
            sql = (
                "UPDATE webhooks SET is_active = 1, failure_count = 0, updated_at = ? "
                "WHERE id = ? AND is_active = 0"
            )
        else:
            sql = "UPDATE webhooks SET is_active = 0, updated_at = ? WHERE id = ?"
        affected = await self._run(self._execute, sql, (_now(), webhook_id))
        return affected > 0

    async def delete_webhook(self, webhook_id: str) -> bool:
        affected = await self._run(
            self._execute, "DELETE FROM webhooks WHERE id = ?", (webhook_id,)
        )
        return affected > 0

    async def record_webhook_success(
        self, webhook_id: str, status_code: int, at: datetime
    ) -> None:
        await self._run(
            self._execute,
            "UPDATE webhooks SET failure_count = 0, last_status_code = ?, "
            "last_triggered_at = ?, updated_at = ? WHERE id = ?",
            (status_code, _ts(at), _ts(at), webhook_id),
        )

    async def record_webhook_failure(
        self, webhook_id: str, status_code: int | None, at: datetime, max_failures: int
    ) -> int:
        def _sync() -> int:
            self._execute(
                "UPDATE webhooks SET failure_count = failure_count + 1, "
                "is_active = CASE WHEN failure_count + 1 >= ? THEN 0 ELSE is_active END, "
                "last_status_code = ?, last_triggered_at = ?, updated_at = ? WHERE id = ?",
                (max_failures, status_code, _ts(at), _ts(at), webhook_id),
            )
            row = self._fetchone("SELECT failure_count FROM webhooks WHERE id = ?", (webhook_id,))
            return int(row[0]) if row else 0

        return await self._run(_sync)

    async def add_delivery(self, delivery: WebhookDelivery) -> None:
        def _sync() -> None:
            row = self._fetchone(
                "SELECT tenant_id FROM webhooks WHERE id = ?", (delivery.webhook_id,)
            )
            self._execute(
                "INSERT INTO webhook_deliveries (id, webhook_id, tenant_id, event_type, payload, "
                "status_code, response_body, response_time_ms, error, attempt_number, "
                "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    delivery.id,
                    delivery.webhook_id,
                    row["tenant_id"] if row else None,
                    delivery.event_type,
                    delivery.payload,
                    delivery.status_code,
                    delivery.response_body,
                    delivery.response_time_ms,
                    delivery.error,
                    delivery.attempt_number,
                    _ts(delivery.created_at),
                ),
            )

        await self._run(_sync)

    async def list_deliveries(self, webhook_id: str, limit: int = 50) -> list[WebhookDelivery]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM webhook_deliveries WHERE webhook_id = ? "
            "ORDER BY created_at DESC LIMIT ?",
            (webhook_id, limit),
        )
        return [self._row_to_delivery(r) for r in rows]

    @staticmethod
    def _row_to_webhook(row: sqlite3.Row) -> Webhook:
        return Webhook(
            id=row["id"],
            tenant_id=row["tenant_id"],
            url=row["url"],
            secret=row["secret"],
            events=[WebhookEventType(e) for e in json.loads(row["events"])],
            is_active=bool(row["is_active"]),
            failure_count=row["failure_count"],
            description=row["description"],
            last_triggered_at=_dt(row["last_triggered_at"]),
            last_status_code=row["last_status_code"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    @staticmethod
    def _row_to_delivery(row: sqlite3.Row) -> WebhookDelivery:
        return WebhookDelivery(
            id=row["id"],
            webhook_id=row["webhook_id"],
            event_type=row["event_type"],
            payload=row["payload"],
            status_code=row["status_code"],
            response_body=row["response_body"],
            response_time_ms=row["response_time_ms"],
            error=row["error"],
            attempt_number=row["attempt_number"],
            created_at=_dt(row["created_at"]),
        )
