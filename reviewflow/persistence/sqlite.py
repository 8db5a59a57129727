"""SQLite implementation of the item repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from ..errors import ConflictError, DependencyError, ValidationError
from .models import HistoryEntry, Item, ItemStatus, WorkflowDefinition, WorkflowStep
from .repository import ItemRepository

T = TypeVar("T")


class SQLiteItemRepository(ItemRepository):
    """Persist review state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise DependencyError(f"Cannot open SQLite database {self.db_path}: {exc}")
        self._conn.row_factory = sqlite3.Row
        # one connection shared by worker threads
        self._mutex = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                brand_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT ''
            );
            CREATE TABLE IF NOT EXISTS workflow_steps (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL REFERENCES workflows(id),
                step_order INTEGER NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL,
                assigned_user_ids TEXT NOT NULL DEFAULT '[]',
                UNIQUE (workflow_id, step_order)
            );
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                item_type TEXT NOT NULL,
                brand_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                created_by TEXT,
                workflow_id TEXT,
                current_step_id TEXT,
                status TEXT NOT NULL,
                completed_step_ids TEXT NOT NULL DEFAULT '[]',
                version INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS item_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                item_id TEXT NOT NULL REFERENCES items(id),
                step_id TEXT,
                step_name TEXT,
                actor_id TEXT NOT NULL,
                action TEXT NOT NULL,
                feedback TEXT,
                created_at TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _guarded(self, fn: Callable[[sqlite3.Cursor], T]) -> T:
        with self._mutex:
            cur = self._conn.cursor()
            try:
                result = fn(cur)
                self._conn.commit()
                return result
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ValidationError(f"Integrity violation: {exc}")
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise DependencyError(f"SQLite error: {exc}")
            except BaseException:
                self._conn.rollback()
                raise

    async def _run(self, fn: Callable[[sqlite3.Cursor], T]) -> T:
        return await asyncio.to_thread(self._guarded, fn)

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> WorkflowStep:
        return WorkflowStep(
            id=row["id"],
            workflow_id=row["workflow_id"],
            order=row["step_order"],
            name=row["name"],
            role=row["role"],
            assigned_user_ids=json.loads(row["assigned_user_ids"]),
        )

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=row["id"],
            item_type=row["item_type"],
            brand_id=row["brand_id"],
            title=row["title"],
            created_by=row["created_by"],
            workflow_id=row["workflow_id"],
            current_step_id=row["current_step_id"],
            status=row["status"],
            completed_step_ids=set(json.loads(row["completed_step_ids"])),
            version=row["version"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> HistoryEntry:
        return HistoryEntry(
            id=row["id"],
            item_id=row["item_id"],
            step_id=row["step_id"],
            step_name=row["step_name"],
            actor_id=row["actor_id"],
            action=row["action"],
            feedback=row["feedback"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _load_workflow(
        self, cur: sqlite3.Cursor, row: sqlite3.Row
    ) -> WorkflowDefinition:
        cur.execute(
            "SELECT * FROM workflow_steps WHERE workflow_id = ? ORDER BY step_order",
            (row["id"],),
        )
        steps = [self._row_to_step(r) for r in cur.fetchall()]
        return WorkflowDefinition(
            id=row["id"], brand_id=row["brand_id"], name=row["name"], steps=steps
        )

    # ------------------------------------------------------------------
    # Repository API
    async def save_workflow(self, workflow: WorkflowDefinition) -> None:
        def op(cur: sqlite3.Cursor) -> None:
            cur.execute(
                "INSERT OR REPLACE INTO workflows (id, brand_id, name) VALUES (?, ?, ?)",
                (workflow.id, workflow.brand_id, workflow.name),
            )
            cur.execute("DELETE FROM workflow_steps WHERE workflow_id = ?", (workflow.id,))
            cur.executemany(
                """
                INSERT INTO workflow_steps
                    (id, workflow_id, step_order, name, role, assigned_user_ids)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        s.id,
                        workflow.id,
                        s.order,
                        s.name,
                        s.role,
                        json.dumps(s.assigned_user_ids),
                    )
                    for s in workflow.steps
                ],
            )

        await self._run(op)

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        def op(cur: sqlite3.Cursor) -> WorkflowDefinition | None:
            cur.execute("SELECT * FROM workflows WHERE id = ?", (workflow_id,))
            row = cur.fetchone()
            return self._load_workflow(cur, row) if row else None

        return await self._run(op)

    async def list_workflows(
        self, brand_id: Optional[str] = None
    ) -> list[WorkflowDefinition]:
        def op(cur: sqlite3.Cursor) -> list[WorkflowDefinition]:
            if brand_id is None:
                cur.execute("SELECT * FROM workflows ORDER BY id")
            else:
                cur.execute(
                    "SELECT * FROM workflows WHERE brand_id = ? ORDER BY id", (brand_id,)
                )
            rows = cur.fetchall()
            return [self._load_workflow(cur, r) for r in rows]

        return await self._run(op)

    async def get_step(self, step_id: str) -> WorkflowStep | None:
        def op(cur: sqlite3.Cursor) -> WorkflowStep | None:
            cur.execute("SELECT * FROM workflow_steps WHERE id = ?", (step_id,))
            row = cur.fetchone()
            return self._row_to_step(row) if row else None

        return await self._run(op)

    async def update_step_assignees(
        self, step_id: str, assigned_user_ids: list[str]
    ) -> None:
        def op(cur: sqlite3.Cursor) -> None:
            cur.execute(
                "UPDATE workflow_steps SET assigned_user_ids = ? WHERE id = ?",
                (json.dumps(list(assigned_user_ids)), step_id),
            )

        await self._run(op)

    async def create_item(self, item: Item) -> None:
        def op(cur: sqlite3.Cursor) -> None:
            cur.execute(
                """
                INSERT INTO items (id, item_type, brand_id, title, created_by, workflow_id,
                                   current_step_id, status, completed_step_ids, version, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    item.item_type.value,
                    item.brand_id,
                    item.title,
                    item.created_by,
                    item.workflow_id,
                    item.current_step_id,
                    item.status.value,
                    json.dumps(sorted(item.completed_step_ids)),
                    item.version,
                    item.updated_at.isoformat(),
                ),
            )

        await self._run(op)

    async def get_item(self, item_id: str) -> Item | None:
        def op(cur: sqlite3.Cursor) -> Item | None:
            cur.execute("SELECT * FROM items WHERE id = ?", (item_id,))
            row = cur.fetchone()
            return self._row_to_item(row) if row else None

        return await self._run(op)

    async def list_items(
        self, status: Optional[ItemStatus] = None, brand_id: Optional[str] = None
    ) -> list[Item]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if brand_id is not None:
            clauses.append("brand_id = ?")
            params.append(brand_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        def op(cur: sqlite3.Cursor) -> list[Item]:
            cur.execute(f"SELECT * FROM items{where} ORDER BY updated_at", params)
            return [self._row_to_item(r) for r in cur.fetchall()]

        return await self._run(op)

    async def commit_transition(
        self, item: Item, expected_version: int, entry: HistoryEntry
    ) -> Item:
        updated_at = datetime.now(timezone.utc)

        def op(cur: sqlite3.Cursor) -> None:
            cur.execute(
                """
                UPDATE items
                SET workflow_id = ?, current_step_id = ?, status = ?,
                    completed_step_ids = ?, version = ?, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    item.workflow_id,
                    item.current_step_id,
                    item.status.value,
                    json.dumps(sorted(item.completed_step_ids)),
                    expected_version + 1,
                    updated_at.isoformat(),
                    item.id,
                    expected_version,
                ),
            )
            if cur.rowcount != 1:
                raise ConflictError(
                    f"Item {item.id} was modified concurrently; reload and retry.",
                    item_id=item.id,
                )
            cur.execute(
                """
                INSERT INTO item_history
                    (id, item_id, step_id, step_name, actor_id, action, feedback, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.item_id,
                    entry.step_id,
                    entry.step_name,
                    entry.actor_id,
                    entry.action.value,
                    entry.feedback,
                    entry.created_at.isoformat(),
                ),
            )

        await self._run(op)
        return item.model_copy(
            update={"version": expected_version + 1, "updated_at": updated_at}
        )

    async def list_history(self, item_id: str) -> list[HistoryEntry]:
        def op(cur: sqlite3.Cursor) -> list[HistoryEntry]:
            cur.execute(
                "SELECT * FROM item_history WHERE item_id = ? ORDER BY seq", (item_id,)
            )
            return [self._row_to_entry(r) for r in cur.fetchall()]

        return await self._run(op)
