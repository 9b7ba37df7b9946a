"""CSV loader — reads and normalizes agent and conversation exports."""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path

from app.adapters.csv_loader.normalizer import (
    clean_string,
    normalize_column_name,
    parse_tags,
)

logger = logging.getLogger(__name__)


def _sniff_dialect(sample: str) -> type[csv.Dialect]:
    """Pick the delimiter (comma/semicolon/tab) that splits the header the most."""
    if not sample:
        return csv.excel

    first_line = sample.splitlines()[0]
    counts = {d: first_line.count(d) for d in (";", ",", "\t")}
    best = max(counts, key=counts.get)
    if counts[best] == 0:
        return csv.excel

    class DynamicDialect(csv.excel):
        delimiter = best

    return DynamicDialect


def _read_csv(file_path: Path, encoding: str = "utf-8-sig") -> list[dict[str, str | None]]:
    """Read a CSV file with BOM handling and column normalization."""
    with open(file_path, encoding=encoding, newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        reader = csv.DictReader(f, dialect=_sniff_dialect(sample))
        if reader.fieldnames is None:
            raise ValueError(f"CSV file {file_path} has no header row")

        col_map = {col: normalize_column_name(col) for col in reader.fieldnames}
        rows = [
            {col_map[k]: clean_string(v) for k, v in raw_row.items() if k is not None}
            for raw_row in reader
        ]

    logger.info("Loaded %d rows from %s (columns: %s)", len(rows), file_path.name, list(col_map.values()))
    return rows


def load_agents(file_path: Path) -> list[dict]:
    """Load the agents CSV.

    Expected columns (after normalization):
        id, organization_id, name, department, skills, max_concurrent_chats,
        availability, rating
    """
    agents = []
    for line_no, row in enumerate(_read_csv(file_path), start=2):
        agent_id = row.get("id") or row.get("agent_id")
        if not agent_id:
            logger.warning("%s line %d: missing agent id, skipped", file_path.name, line_no)
            continue
        max_chats = _parse_int(row.get("max_concurrent_chats") or row.get("max_chats"))
        if max_chats <= 0:
            logger.warning("%s line %d: agent %s has no chat capacity, skipped", file_path.name, line_no, agent_id)
            continue

        agents.append({
            "id": agent_id,
            "organization_id": row.get("organization_id") or row.get("organization") or "",
            "name": row.get("name") or agent_id,
            "department": row.get("department"),
            "skills": parse_tags(row.get("skills")),
            "max_concurrent_chats": max_chats,
            "availability": (row.get("availability") or row.get("status") or "offline").lower(),
            "rating": _parse_float(row.get("rating")),
        })
    logger.info("Parsed %d agents", len(agents))
    return agents


def load_conversations(file_path: Path) -> list[dict]:
    """Load the conversations CSV.

    Expected columns (after normalization):
        id, organization_id, customer_name, subject, priority,
        required_skills, tags, created_at, last_activity_at
    """
    conversations = []
    for line_no, row in enumerate(_read_csv(file_path), start=2):
        conversation_id = row.get("id") or row.get("session_id")
        if not conversation_id:
            logger.warning("%s line %d: missing conversation id, skipped", file_path.name, line_no)
            continue

        created_at = _parse_datetime(row.get("created_at")) or datetime.now(timezone.utc)
        conversations.append({
            "id": conversation_id,
            "organization_id": row.get("organization_id") or row.get("organization") or "",
            "customer_name": row.get("customer_name") or row.get("customer"),
            "subject": row.get("subject"),
            "priority": (row.get("priority") or "normal").lower(),
            "required_skills": parse_tags(row.get("required_skills") or row.get("skills")),
            "tags": parse_tags(row.get("tags")),
            "created_at": created_at,
            "last_activity_at": _parse_datetime(row.get("last_activity_at")) or created_at,
        })
    logger.info("Parsed %d conversations", len(conversations))
    return conversations


def _parse_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value.replace(",", ".").strip())
    except ValueError:
        return None


def _parse_int(value: str | None) -> int:
    if not value:
        return 0
    try:
        # handle "4", "4.0"
        return int(float(value.replace(",", ".").strip()))
    except ValueError:
        return 0


def _parse_datetime(value: str | None) -> datetime | None:
    """ISO-8601 timestamps; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
