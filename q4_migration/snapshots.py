"""Versioned JSON snapshots exchanged between scrape and migrate operations.

Every snapshot is a JSON object carrying ``schemaVersion`` and ``kind`` next
to its payload. Migrators load snapshots through :func:`load_snapshot`, which
refuses files written by an older layout instead of failing later on a
missing key::

    write_snapshot(data_dir, site, FAQ, {"faqLists": lists})
    document = load_snapshot(data_dir, site, FAQ)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from .errors import SnapshotError
from .sites import safe_dir_name

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

FAQ = "faq"
PERSONS = "persons"
PERSONS_MERGED = "persons-merged"
LOOKUP_LIST = "lookup-list"
ANALYST_COMMITTEE_LLM = "analyst-committee-llm"
ANALYST_COMMITTEE_RAW = "analyst-committee-raw"
LINK_UPDATES = "link-updates"


@dataclass(frozen=True)
class SnapshotSchema:
    kind: str
    relative_path: Tuple[str, ...]
    required: Tuple[str, ...]
    # key of a list whose items must carry ``item_required``
    item_list: str = ""
    item_required: Tuple[str, ...] = ()


SCHEMAS: Dict[str, SnapshotSchema] = {
    FAQ: SnapshotSchema(
        FAQ, ("faq.json",), ("faqLists",), "faqLists", ("listName", "questions")
    ),
    PERSONS: SnapshotSchema(
        PERSONS, ("persons", "persons.json"), ("departments",), "departments", ("name", "persons")
    ),
    PERSONS_MERGED: SnapshotSchema(
        PERSONS_MERGED,
        ("persons", "persons-merged.json"),
        ("departments",),
        "departments",
        ("name", "persons"),
    ),
    LOOKUP_LIST: SnapshotSchema(
        LOOKUP_LIST, ("lookup_list.json",), ("categories",), "categories", ("lookupText", "lookupValue")
    ),
    ANALYST_COMMITTEE_LLM: SnapshotSchema(
        ANALYST_COMMITTEE_LLM,
        ("analyst-committee-llm.json",),
        ("siteName", "analysts", "committees", "committeeMembers"),
    ),
    ANALYST_COMMITTEE_RAW: SnapshotSchema(
        ANALYST_COMMITTEE_RAW, ("analyst-committee-raw.json",), ("siteName", "html")
    ),
    LINK_UPDATES: SnapshotSchema(
        LINK_UPDATES, ("link-updates.json",), ("updates",), "updates", ("oldPath", "newPath")
    ),
}


def site_dir(data_dir: Path, site_name: str) -> Path:
    return Path(data_dir) / safe_dir_name(site_name)


def snapshot_path(data_dir: Path, site_name: str, kind: str) -> Path:
    return site_dir(data_dir, site_name).joinpath(*_schema(kind).relative_path)


def _schema(kind: str) -> SnapshotSchema:
    try:
        return SCHEMAS[kind]
    except KeyError as exc:
        raise SnapshotError(f"Unknown snapshot kind: {kind}") from exc


def validate_snapshot(kind: str, document: Any, source: str = "<memory>") -> Dict[str, Any]:
    """Check version, kind and required keys; return the document."""

    schema = _schema(kind)
    if not isinstance(document, dict):
        raise SnapshotError(f"{source}: expected a JSON object for {kind}")
    version = document.get("schemaVersion")
    if version != SCHEMA_VERSION:
        raise SnapshotError(
            f"{source}: {kind} snapshot has schemaVersion {version!r}, expected {SCHEMA_VERSION}; re-run the scrape"
        )
    if document.get("kind") != kind:
        raise SnapshotError(f"{source}: expected a {kind} snapshot, found {document.get('kind')!r}")
    missing = [key for key in schema.required if key not in document]
    if missing:
        raise SnapshotError(f"{source}: {kind} snapshot is missing {', '.join(missing)}")
    if schema.item_list:
        items = document[schema.item_list]
        if not isinstance(items, list):
            raise SnapshotError(f"{source}: {schema.item_list} must be a list")
        for index, item in enumerate(items):
            absent = [key for key in schema.item_required if not isinstance(item, dict) or key not in item]
            if absent:
                raise SnapshotError(
                    f"{source}: {schema.item_list}[{index}] is missing {', '.join(absent)}"
                )
    return document


def stamp(kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    document = {"schemaVersion": SCHEMA_VERSION, "kind": kind}
    document.update(payload)
    return document


def write_json(path: Path, content: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def read_json(path: Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SnapshotError(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Failed to parse JSON from {path}: {exc}") from exc


def write_snapshot(data_dir: Path, site_name: str, kind: str, payload: Dict[str, Any]) -> Path:
    """Validate and overwrite the snapshot file for ``site_name``."""

    path = snapshot_path(data_dir, site_name, kind)
    document = validate_snapshot(kind, stamp(kind, payload), str(path))
    write_json(path, document)
    logger.info("Wrote %s snapshot to %s", kind, path)
    return path


def load_snapshot_file(path: Path, kind: str) -> Dict[str, Any]:
    return validate_snapshot(kind, read_json(path), str(path))


def load_snapshot(data_dir: Path, site_name: str, kind: str) -> Dict[str, Any]:
    return load_snapshot_file(snapshot_path(data_dir, site_name, kind), kind)
