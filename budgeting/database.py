"""
SQLite persistence for publication budgets.

A single database file (output/budgets.db) holds:

  - budgets      one row per quote, with the five publication lines flattened
                 into positional columns (line1_* .. line5_*)
  - budget_numbers  an AUTOINCREMENT table used as a sequence, so display
                 numbers are monotonic and never reused after a delete
  - audit_log    who created / updated / deleted what, and when

Amounts are stored as TEXT exactly as received.  Parsing happens in
budgeting.valuation, which degrades malformed values to zero.

total_value is computed once in create_budget() and never touched again:
update_budget() applies the requested fields and nothing else.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.budget import LINE_COUNT, Budget, BudgetDraft, PublicationLine

from .valuation import budget_total

logger = logging.getLogger(__name__)

_LINE_COLUMNS = "\n".join(
    f"""    line{i}_vendor       TEXT,
    line{i}_unit_rate    TEXT,
    line{i}_format       TEXT,
    line{i}_include      INTEGER NOT NULL DEFAULT 0,"""
    for i in range(1, LINE_COUNT + 1)
)

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS budget_numbers (
    number  INTEGER PRIMARY KEY AUTOINCREMENT
);

CREATE TABLE IF NOT EXISTS budgets (
    id                TEXT PRIMARY KEY,
    budget_number     INTEGER NOT NULL UNIQUE,

    client_name       TEXT NOT NULL,
    client_email      TEXT NOT NULL,

{_LINE_COLUMNS}

    design_fee        TEXT NOT NULL DEFAULT '0',
    -- Write-time snapshot of the included lines + design fee
    total_value       TEXT NOT NULL,

    publication_date  TEXT NOT NULL,
    approved          INTEGER NOT NULL DEFAULT 0,
    rejected          INTEGER NOT NULL DEFAULT 0,
    notes             TEXT,

    created_by        TEXT,
    created_at        TEXT NOT NULL,
    updated_at        TEXT
);

CREATE INDEX IF NOT EXISTS idx_budgets_created_at ON budgets (created_at DESC);
CREATE INDEX IF NOT EXISTS idx_budgets_client     ON budgets (client_name);
CREATE INDEX IF NOT EXISTS idx_budgets_pub_date   ON budgets (publication_date);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    budget_id   TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | updated | deleted
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob
);

CREATE INDEX IF NOT EXISTS idx_audit_budget    ON audit_log (budget_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

# Scalar budget fields that a partial update may touch, mapped to columns.
_UPDATABLE = {
    "client_name":      "client_name",
    "client_email":     "client_email",
    "design_fee":       "design_fee",
    "publication_date": "publication_date",
    "approved":         "approved",
    "rejected":         "rejected",
    "notes":            "notes",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _amount_text(value) -> Optional[str]:
    return None if value is None else str(value)


def _line_params(lines) -> dict:
    params: dict = {}
    for i, line in enumerate(lines, start=1):
        params[f"line{i}_vendor"] = line.vendor_name or None
        params[f"line{i}_unit_rate"] = _amount_text(line.unit_rate)
        params[f"line{i}_format"] = _amount_text(line.format_multiplier)
        params[f"line{i}_include"] = int(line.include_in_total)
    return params


def _row_to_budget(row: sqlite3.Row) -> Budget:
    lines = [
        PublicationLine(
            vendor_name=row[f"line{i}_vendor"],
            unit_rate=row[f"line{i}_unit_rate"],
            format_multiplier=row[f"line{i}_format"],
            include_in_total=bool(row[f"line{i}_include"]),
        )
        for i in range(1, LINE_COUNT + 1)
    ]
    return Budget(
        id=row["id"],
        sequence_number=row["budget_number"],
        client_name=row["client_name"],
        client_email=row["client_email"],
        lines=lines,
        design_fee=row["design_fee"],
        total_value=row["total_value"],
        publication_date=datetime.fromisoformat(row["publication_date"]),
        approved=bool(row["approved"]),
        rejected=bool(row["rejected"]),
        notes=row["notes"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )


class Database:
    """Thin wrapper around an SQLite database file for budget records."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_budget(self, draft: BudgetDraft, actor: str = "system") -> Budget:
        """
        Store a new budget, assigning its id and sequence number.

        total_value is computed here, once, from the draft's lines and
        design fee.
        """
        budget_id = uuid.uuid4().hex
        total = budget_total(draft.lines, draft.design_fee)
        created_at = _now()

        params = {
            "id":               budget_id,
            "client_name":      draft.client_name,
            "client_email":     draft.client_email,
            "design_fee":       _amount_text(draft.design_fee) or "0",
            "total_value":      str(total),
            "publication_date": draft.publication_date.isoformat(),
            "approved":         int(draft.approved),
            "rejected":         int(draft.rejected),
            "notes":            draft.notes,
            "created_by":       actor,
            "created_at":       created_at,
            **_line_params(draft.lines),
        }
        columns = ", ".join(params)
        placeholders = ", ".join(f":{c}" for c in params)

        with self._conn() as conn:
            number = conn.execute("INSERT INTO budget_numbers DEFAULT VALUES").lastrowid
            conn.execute(
                f"INSERT INTO budgets (budget_number, {columns}) VALUES (:budget_number, {placeholders})",
                {"budget_number": number, **params},
            )

        logger.info("Budget created: #%04d %s  client=%s  total=%s",
                    number, budget_id, draft.client_name, total)
        self.log_audit(budget_id, "created", actor=actor,
                       detail={"budget_number": number, "total_value": str(total)})
        return self.get_budget(budget_id)

    def update_budget(self, budget_id: str, changes: dict, actor: str = "system") -> Optional[Budget]:
        """
        Apply a partial update.  Returns the updated budget, or None if not found.

        *changes* holds only the fields the caller explicitly set.  Editing
        lines or the design fee does NOT recompute total_value.
        """
        unknown = set(changes) - set(_UPDATABLE) - {"lines"}
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        params: dict = {}
        for field_name, value in changes.items():
            if field_name == "lines":
                params.update(_line_params(value))
            elif field_name == "design_fee":
                params["design_fee"] = _amount_text(value) or "0"
            elif field_name == "publication_date":
                params["publication_date"] = value.isoformat()
            elif field_name in ("approved", "rejected"):
                params[field_name] = int(bool(value))
            else:
                params[_UPDATABLE[field_name]] = value

        if not params:
            return self.get_budget(budget_id)

        params["updated_at"] = _now()
        assignments = ", ".join(f"{c} = :{c}" for c in params)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE budgets SET {assignments} WHERE id = :budget_id",
                {**params, "budget_id": budget_id},
            )
            changed = conn.execute("SELECT changes()").fetchone()[0]

        if not changed:
            return None
        logger.info("Budget updated: %s  fields=%s", budget_id, sorted(changes))
        self.log_audit(budget_id, "updated", actor=actor, detail={"fields": sorted(changes)})
        return self.get_budget(budget_id)

    def delete_budget(self, budget_id: str, actor: str = "system") -> bool:
        """Delete a budget record.  Its sequence number is not reused."""
        with self._conn() as conn:
            conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))
            deleted = conn.execute("SELECT changes()").fetchone()[0] > 0
        if deleted:
            logger.info("Budget deleted: %s", budget_id)
            self.log_audit(budget_id, "deleted", actor=actor)
        return deleted

    def log_audit(
        self,
        budget_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (budget_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    budget_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_budget(self, budget_id: str) -> Optional[Budget]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM budgets WHERE id = ?", (budget_id,)).fetchone()
        return _row_to_budget(row) if row else None

    def list_budgets(
        self,
        search: Optional[str] = None,
        limit: int = -1,
        offset: int = 0,
    ) -> list[Budget]:
        """
        Return budgets newest-first.

        Args:
            search:  Case-insensitive substring match on client name or email.
            limit:   Max rows to return (-1 for all).
            offset:  Pagination offset.
        """
        where = ""
        params: list = []
        if search:
            where = "WHERE client_name LIKE ? OR client_email LIKE ?"
            like = f"%{search}%"
            params.extend([like, like])
        params.extend([limit, offset])

        with self._conn() as conn:
            rows = conn.execute(
                f"""SELECT * FROM budgets {where}
                    ORDER BY created_at DESC, budget_number DESC
                    LIMIT ? OFFSET ?""",
                params,
            ).fetchall()
        return [_row_to_budget(r) for r in rows]

    def next_budget_number(self) -> int:
        """Number the next created budget will receive (informational only)."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT seq FROM sqlite_sequence WHERE name = 'budget_numbers'"
            ).fetchone()
        return (row["seq"] if row else 0) + 1

    def get_stats(self) -> dict:
        """Counts by approval state."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(CASE WHEN approved = 1 THEN 1 ELSE 0 END), 0) AS approved,
                    COALESCE(SUM(CASE WHEN rejected = 1 THEN 1 ELSE 0 END), 0) AS rejected,
                    COALESCE(SUM(CASE WHEN approved = 0 AND rejected = 0 THEN 1 ELSE 0 END), 0) AS pending,
                    MAX(created_at) AS last_created
                FROM budgets
                """
            ).fetchone()
        return dict(row) if row else {}

    def get_audit_log(self, budget_id: str) -> list[dict]:
        """Return all audit entries for one budget, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE budget_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (budget_id,),
            ).fetchall()
        return [dict(r) for r in rows]
