from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

from ..errors import StoreError, ValidationError
from ..utils import from_epoch
from .types import Contact, Project, ProjectRule, validate_rule_type

if TYPE_CHECKING:
    from ._store import EventStore


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=int(row["id"]),
        name=row["name"],
        color=row["color"],
        created_at=from_epoch(row["created_at"]),
    )


def _row_to_rule(row: sqlite3.Row) -> ProjectRule:
    return ProjectRule(
        id=int(row["id"]),
        project_id=int(row["project_id"]),
        rule_type=row["rule_type"],
        match_value=row["match_value"],
        created_at=from_epoch(row["created_at"]),
    )


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("project name is required")
    return cleaned


def _clean_match_value(match_value: str) -> str:
    cleaned = (match_value or "").strip()
    if not cleaned:
        raise ValidationError("rule match value is required")
    return cleaned


def upsert_contact(store: EventStore, name: str, email: str | None = None) -> int:
    """Find the (name, email) contact, refreshing it, or create it."""

    name = (name or "").strip()
    if not name:
        raise ValidationError("contact name is required")
    email = (email or "").strip() or None
    now = store.now()
    with store.locked() as conn:
        row = conn.execute(
            "SELECT id FROM contacts WHERE name = ? AND email IS ?", (name, email)
        ).fetchone()
        if row is not None:
            conn.execute("UPDATE contacts SET updated_at = ? WHERE id = ?", (now, row["id"]))
            conn.commit()
            return int(row["id"])
        cur = conn.execute(
            "INSERT INTO contacts(name, email, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (name, email, now, now),
        )
        conn.commit()
    return int(cur.lastrowid or 0)


def get_contact(store: EventStore, contact_id: int) -> Contact | None:
    with store.locked() as conn:
        row = conn.execute(
            "SELECT id, name, email, created_at, updated_at FROM contacts WHERE id = ?",
            (contact_id,),
        ).fetchone()
    if row is None:
        return None
    return Contact(
        id=int(row["id"]),
        name=row["name"],
        email=row["email"],
        created_at=from_epoch(row["created_at"]),
        updated_at=from_epoch(row["updated_at"]),
    )


def create_project(store: EventStore, name: str, color: str | None = None) -> int:
    name = _clean_name(name)
    with store.locked() as conn:
        try:
            cur = conn.execute(
                "INSERT INTO projects(name, color, created_at) VALUES (?, ?, ?)",
                (name, color, store.now()),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise StoreError(f"project '{name}' already exists") from exc
        conn.commit()
    return int(cur.lastrowid or 0)


def update_project(store: EventStore, project_id: int, name: str, color: str | None) -> None:
    name = _clean_name(name)
    with store.locked() as conn:
        try:
            cur = conn.execute(
                "UPDATE projects SET name = ?, color = ? WHERE id = ?",
                (name, color, project_id),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise StoreError(f"project '{name}' already exists") from exc
        conn.commit()
    if cur.rowcount == 0:
        raise ValidationError(f"project {project_id} does not exist")


def delete_project(store: EventStore, project_id: int) -> None:
    # Foreign keys null out events.project_id and cascade to project_rules.
    with store.locked() as conn:
        conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        conn.commit()


def get_project(store: EventStore, project_id: int) -> Project | None:
    with store.locked() as conn:
        row = conn.execute(
            "SELECT id, name, color, created_at FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
    return _row_to_project(row) if row else None


def list_projects(store: EventStore) -> list[Project]:
    with store.locked() as conn:
        rows = conn.execute(
            "SELECT id, name, color, created_at FROM projects ORDER BY name"
        ).fetchall()
    return [_row_to_project(row) for row in rows]


def event_project(store: EventStore, event_id: int) -> Project | None:
    with store.locked() as conn:
        row = conn.execute(
            """
            SELECT p.id, p.name, p.color, p.created_at
            FROM projects p
            JOIN events e ON e.project_id = p.id
            WHERE e.id = ?
            """,
            (event_id,),
        ).fetchone()
    return _row_to_project(row) if row else None


def create_rule(store: EventStore, project_id: int, rule_type: str, match_value: str) -> int:
    rule_type = validate_rule_type(rule_type)
    match_value = _clean_match_value(match_value)
    with store.locked() as conn:
        try:
            cur = conn.execute(
                """
                INSERT INTO project_rules(project_id, rule_type, match_value, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (project_id, rule_type, match_value, store.now()),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise StoreError(
                f"cannot create {rule_type} rule '{match_value}' for project {project_id}: {exc}"
            ) from exc
        conn.commit()
    return int(cur.lastrowid or 0)


def update_rule(store: EventStore, rule_id: int, rule_type: str, match_value: str) -> None:
    rule_type = validate_rule_type(rule_type)
    match_value = _clean_match_value(match_value)
    with store.locked() as conn:
        try:
            cur = conn.execute(
                "UPDATE project_rules SET rule_type = ?, match_value = ? WHERE id = ?",
                (rule_type, match_value, rule_id),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise StoreError(f"{rule_type} rule '{match_value}' already exists") from exc
        conn.commit()
    if cur.rowcount == 0:
        raise ValidationError(f"rule {rule_id} does not exist")


def delete_rule(store: EventStore, rule_id: int) -> None:
    with store.locked() as conn:
        conn.execute("DELETE FROM project_rules WHERE id = ?", (rule_id,))
        conn.commit()


def list_rules(store: EventStore, project_id: int | None = None) -> list[ProjectRule]:
    """Rules in creation order, which is also the order they are applied in."""

    with store.locked() as conn:
        if project_id is None:
            rows = conn.execute(
                """
                SELECT id, project_id, rule_type, match_value, created_at
                FROM project_rules
                ORDER BY id ASC
                """
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT id, project_id, rule_type, match_value, created_at
                FROM project_rules
                WHERE project_id = ?
                ORDER BY id ASC
                """,
                (project_id,),
            ).fetchall()
    return [_row_to_rule(row) for row in rows]
