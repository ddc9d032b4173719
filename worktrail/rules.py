from __future__ import annotations

import logging
from typing import Final

from .store import EventStore
from .store.types import (
    EVENT_TYPE_BROWSER,
    EVENT_TYPE_CALENDAR,
    EVENT_TYPE_VERSION_CONTROL,
    ProjectRule,
)

logger = logging.getLogger(__name__)

# Each statement takes (project_id, updated_at, match_value).
RULE_STATEMENTS: Final[dict[str, str]] = {
    "organizer": f"""
        UPDATE events SET project_id = ?, updated_at = ?
        WHERE event_type = '{EVENT_TYPE_CALENDAR}'
          AND organizer_id IN (SELECT id FROM contacts WHERE name = ?)
    """,
    "title_pattern": f"""
        UPDATE events SET project_id = ?, updated_at = ?
        WHERE event_type = '{EVENT_TYPE_CALENDAR}'
          AND instr(lower(title), lower(?)) > 0
    """,
    "repository": f"""
        UPDATE events SET project_id = ?, updated_at = ?
        WHERE event_type IN ('{EVENT_TYPE_VERSION_CONTROL}', '{EVENT_TYPE_BROWSER}')
          AND repository_path = ?
    """,
    "url_pattern": f"""
        UPDATE events SET project_id = ?, updated_at = ?
        WHERE event_type = '{EVENT_TYPE_BROWSER}'
          AND json_extract(type_specific_data, '$.url') LIKE ?
    """,
    "domain": f"""
        UPDATE events SET project_id = ?, updated_at = ?
        WHERE event_type = '{EVENT_TYPE_BROWSER}'
          AND domain = ?
    """,
}


def url_pattern_to_like(pattern: str) -> str:
    """Translate shell-style wildcards to LIKE; ``%`` and ``_`` pass through."""

    return pattern.replace("*", "%").replace("?", "_")


def _match_argument(rule: ProjectRule) -> str:
    if rule.rule_type == "url_pattern":
        return url_pattern_to_like(rule.match_value)
    return rule.match_value


def apply_rules(store: EventStore) -> int:
    """Assign projects to every stored event matched by a rule.

    Rules run in creation order, so when two rules match one event the later
    rule's project sticks. The result sums the rows touched by each rule; an
    event matched twice is counted twice.
    """

    rules = store.list_rules()
    now = store.now()
    total = 0
    with store.locked() as conn:
        for rule in rules:
            statement = RULE_STATEMENTS.get(rule.rule_type)
            if statement is None:
                logger.warning("skipping rule %s with unknown type %r", rule.id, rule.rule_type)
                continue
            cur = conn.execute(statement, (rule.project_id, now, _match_argument(rule)))
            logger.debug(
                "rule %s (%s=%r) matched %d events",
                rule.id,
                rule.rule_type,
                rule.match_value,
                cur.rowcount,
            )
            total += max(cur.rowcount, 0)
        conn.commit()
    logger.info("applied %d rules to %d events", len(rules), total)
    return total
