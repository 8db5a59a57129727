"""PostgreSQL implementation of the item repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import asyncpg

from ..errors import ConflictError, DependencyError, ValidationError
from .models import HistoryEntry, Item, ItemStatus, WorkflowDefinition, WorkflowStep
from .repository import ItemRepository


class PostgresItemRepository(ItemRepository):
    """Persist review state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            conn = await self._connect()
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise DependencyError(f"PostgreSQL unreachable: {exc}")
        try:
            yield conn
        except asyncpg.UniqueViolationError as exc:
            raise ValidationError(f"Integrity violation: {exc}")
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise DependencyError(f"PostgreSQL error: {exc}")
        finally:
            await conn.close()

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                brand_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT ''
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_steps (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL REFERENCES workflows(id),
                step_order INTEGER NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL,
                assigned_user_ids TEXT[] NOT NULL DEFAULT '{}',
                UNIQUE (workflow_id, step_order)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                item_type TEXT NOT NULL,
                brand_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                created_by TEXT,
                workflow_id TEXT,
                current_step_id TEXT,
                status TEXT NOT NULL,
                completed_step_ids TEXT[] NOT NULL DEFAULT '{}',
                version INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS item_history (
                seq BIGSERIAL PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                item_id TEXT NOT NULL REFERENCES items(id),
                step_id TEXT,
                step_name TEXT,
                actor_id TEXT NOT NULL,
                action TEXT NOT NULL,
                feedback TEXT,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_step(r: Any) -> WorkflowStep:
        return WorkflowStep(
            id=r["id"],
            workflow_id=r["workflow_id"],
            order=r["step_order"],
            name=r["name"],
            role=r["role"],
            assigned_user_ids=list(r["assigned_user_ids"] or []),
        )

    @staticmethod
    def _row_to_item(r: Any) -> Item:
        return Item(
            id=r["id"],
            item_type=r["item_type"],
            brand_id=r["brand_id"],
            title=r["title"],
            created_by=r["created_by"],
            workflow_id=r["workflow_id"],
            current_step_id=r["current_step_id"],
            status=r["status"],
            completed_step_ids=set(r["completed_step_ids"] or []),
            version=r["version"],
            updated_at=r["updated_at"],
        )

    async def _load_workflow(
        self, conn: asyncpg.Connection, row: Any
    ) -> WorkflowDefinition:
        step_rows = await conn.fetch(
            "SELECT * FROM workflow_steps WHERE workflow_id = $1 ORDER BY step_order",
            row["id"],
        )
        return WorkflowDefinition(
            id=row["id"],
            brand_id=row["brand_id"],
            name=row["name"],
            steps=[self._row_to_step(r) for r in step_rows],
        )

    # ------------------------------------------------------------------
    async def save_workflow(self, workflow: WorkflowDefinition) -> None:
        async with self._connection() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO workflows (id, brand_id, name) VALUES ($1, $2, $3)
                    ON CONFLICT (id) DO UPDATE SET brand_id = $2, name = $3
                    """,
                    workflow.id,
                    workflow.brand_id,
                    workflow.name,
                )
                await conn.execute(
                    "DELETE FROM workflow_steps WHERE workflow_id = $1", workflow.id
                )
                await conn.executemany(
                    """
                    INSERT INTO workflow_steps
                        (id, workflow_id, step_order, name, role, assigned_user_ids)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    [
                        (s.id, workflow.id, s.order, s.name, s.role, s.assigned_user_ids)
                        for s in workflow.steps
                    ],
                )

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        async with self._connection() as conn:
            row = await conn.fetchrow("SELECT * FROM workflows WHERE id = $1", workflow_id)
            if not row:
                return None
            return await self._load_workflow(conn, row)

    async def list_workflows(
        self, brand_id: Optional[str] = None
    ) -> list[WorkflowDefinition]:
        async with self._connection() as conn:
            if brand_id is None:
                rows = await conn.fetch("SELECT * FROM workflows ORDER BY id")
            else:
                rows = await conn.fetch(
                    "SELECT * FROM workflows WHERE brand_id = $1 ORDER BY id", brand_id
                )
            return [await self._load_workflow(conn, r) for r in rows]

    async def get_step(self, step_id: str) -> WorkflowStep | None:
        async with self._connection() as conn:
            row = await conn.fetchrow("SELECT * FROM workflow_steps WHERE id = $1", step_id)
        return self._row_to_step(row) if row else None

    async def update_step_assignees(
        self, step_id: str, assigned_user_ids: list[str]
    ) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "UPDATE workflow_steps SET assigned_user_ids = $1 WHERE id = $2",
                list(assigned_user_ids),
                step_id,
            )

    async def create_item(self, item: Item) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO items (id, item_type, brand_id, title, created_by, workflow_id,
                                   current_step_id, status, completed_step_ids, version, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                """,
                item.id,
                item.item_type.value,
                item.brand_id,
                item.title,
                item.created_by,
                item.workflow_id,
                item.current_step_id,
                item.status.value,
                sorted(item.completed_step_ids),
                item.version,
                item.updated_at,
            )

    async def get_item(self, item_id: str) -> Item | None:
        async with self._connection() as conn:
            row = await conn.fetchrow("SELECT * FROM items WHERE id = $1", item_id)
        return self._row_to_item(row) if row else None

    async def list_items(
        self, status: Optional[ItemStatus] = None, brand_id: Optional[str] = None
    ) -> list[Item]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            params.append(status.value)
            clauses.append(f"status = ${len(params)}")
        if brand_id is not None:
            params.append(brand_id)
            clauses.append(f"brand_id = ${len(params)}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            rows = await conn.fetch(f"SELECT * FROM items{where} ORDER BY updated_at", *params)
        return [self._row_to_item(r) for r in rows]

    async def commit_transition(
        self, item: Item, expected_version: int, entry: HistoryEntry
    ) -> Item:
        updated_at = datetime.now(timezone.utc)
        async with self._connection() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    UPDATE items
                    SET workflow_id = $1, current_step_id = $2, status = $3,
                        completed_step_ids = $4, version = $5, updated_at = $6
                    WHERE id = $7 AND version = $8
                    RETURNING *
                    """,
                    item.workflow_id,
                    item.current_step_id,
                    item.status.value,
                    sorted(item.completed_step_ids),
                    expected_version + 1,
                    updated_at,
                    item.id,
                    expected_version,
                )
                if row is None:
                    raise ConflictError(
                        f"Item {item.id} was modified concurrently; reload and retry.",
                        item_id=item.id,
                    )
                await conn.execute(
                    """
                    INSERT INTO item_history
                        (id, item_id, step_id, step_name, actor_id, action, feedback, created_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    """,
                    entry.id,
                    entry.item_id,
                    entry.step_id,
                    entry.step_name,
                    entry.actor_id,
                    entry.action.value,
                    entry.feedback,
                    entry.created_at,
                )
        return self._row_to_item(row)

    async def list_history(self, item_id: str) -> list[HistoryEntry]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM item_history WHERE item_id = $1 ORDER BY seq", item_id
            )
        return [
            HistoryEntry(
                id=r["id"],
                item_id=r["item_id"],
                step_id=r["step_id"],
                step_name=r["step_name"],
                actor_id=r["actor_id"],
                action=r["action"],
                feedback=r["feedback"],
                created_at=r["created_at"],
            )
            for r in rows
        ]
