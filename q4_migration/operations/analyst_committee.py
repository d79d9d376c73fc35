"""Templates for the hand-curated analyst and committee data.

``setup`` writes two files per site: ``analyst-committee-raw.json`` with the
filling instructions, examples and any captured HTML, and an empty
``analyst-committee-llm.json`` to be filled in. When the curated file is
already filled, setup normalizes its roles instead of overwriting it.
``clean`` strips the instructions, examples and HTML from a curated file.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..context import OperationContext
from ..errors import SnapshotError
from ..matching import DEFAULT_MEMBERSHIP_ROLE, MEMBERSHIP_ROLES, SPECIAL_ROLES, closest
from ..sites import Site
from ..snapshots import (
    ANALYST_COMMITTEE_LLM,
    ANALYST_COMMITTEE_RAW,
    read_json,
    snapshot_path,
    stamp,
    write_json,
    write_snapshot,
)

logger = logging.getLogger(__name__)

INSTRUCTIONS = """Fill in the 'analysts', 'committees', and 'committeeMembers' arrays based on the provided HTML and the examples below.
- For each analyst, if a website or profile URL exists, include it as the 'url' field.
- For each committee, extract any attachments (such as charters or PDFs) and add them as 'attachmentURL' in the committee object.
- For each committee member, list their committees and roles using the 'committee' and 'membershipRole' fields.
- Allowed membershipRole values for each committee: Committee Member, Committee Chair, Vice Chair, Non-Member
- Allowed specialRoles values: Lead Independent Director, Independent Director, Financial Expert, Board Chair, Director, Vice Board Chair, CEO
- Only fill in specialRoles based on what is present in the table legend for each person.
- There can be at most one Board Chair and one Vice Board Chair per committee.
- Do not change any other part of the file."""

ANALYSTS_EXAMPLE = [
    {
        "analyst": "John Doe",
        "firm": "Example Securities",
        "title": "Senior Research Analyst, CFA",
        "url": "https://example.com/analyst/john-doe",
        "email": "john.doe@example.com",
        "phone": "+1 123 456 7890",
        "location": "New York, NY\nUnited States",
        "targetPrice": "$50.00",
        "reportingDate": "2024-03-20",
        "rating": "Buy",
    }
]

COMMITTEES_EXAMPLE = [
    {"committee": "Audit Committee", "attachmentURL": "/files/doc_downloads/governance/Audit-Committee-Charter.pdf"},
    {"committee": "Compensation Committee", "attachmentURL": ""},
]

COMMITTEE_MEMBERS_EXAMPLE = [
    {
        "name": "John Doe",
        "committees": [
            {"committee": "Audit Committee", "membershipRole": "Committee Chair"},
            {"committee": "Compensation Committee", "membershipRole": "Committee Member"},
        ],
        "specialRoles": ["Lead Independent Director", "Financial Expert"],
    },
    {
        "name": "Jane Smith",
        "committees": [{"committee": "Audit Committee", "membershipRole": "Committee Member"}],
        "specialRoles": [],
    },
]

TEMPLATE_KEYS = ("instructions", "analystsExample", "committeesExample", "committeeMembersExample", "llmComplete")

_HTML_WITH_COMMA = re.compile(r'"html"\s*:\s*\{[\s\S]*?\}\s*,?')
_HTML_LAST = re.compile(r',?\s*"html"\s*:\s*\{[^}]*\}', re.DOTALL)


def raw_template(site_name: str, analysts_html: str = "", committee_html: str = "") -> Dict[str, Any]:
    return {
        "instructions": INSTRUCTIONS,
        "analystsExample": ANALYSTS_EXAMPLE,
        "committeesExample": COMMITTEES_EXAMPLE,
        "committeeMembersExample": COMMITTEE_MEMBERS_EXAMPLE,
        "siteName": site_name,
        "html": {"analystsHtml": analysts_html, "committeeHtml": committee_html},
    }


def llm_template(site_name: str) -> Dict[str, Any]:
    return {"siteName": site_name, "analysts": [], "committees": [], "committeeMembers": []}


def normalize_member_roles(members: List[Dict[str, Any]]) -> List[str]:
    """Coerce roles in place to the allowed values; return a change log."""

    changes: List[str] = []
    for member in members:
        name = member.get("name", "?")
        special = member.setdefault("specialRoles", [])
        for entry in member.get("committees") or []:
            role = entry.get("membershipRole", "")
            if role in MEMBERSHIP_ROLES:
                continue
            if role in SPECIAL_ROLES:
                if role not in special:
                    special.append(role)
                entry["membershipRole"] = DEFAULT_MEMBERSHIP_ROLE
                changes.append(f"{name}: moved {role!r} from {entry.get('committee')} to specialRoles")
                continue
            suggestion = closest(role, MEMBERSHIP_ROLES) or DEFAULT_MEMBERSHIP_ROLE
            entry["membershipRole"] = suggestion
            changes.append(f"{name}: membership role {role!r} -> {suggestion!r}")

        kept: List[str] = []
        for role in special:
            if role in SPECIAL_ROLES:
                fixed = role
            else:
                fixed = closest(role, SPECIAL_ROLES)
                changes.append(f"{name}: special role {role!r} -> {fixed!r}" if fixed else f"{name}: removed special role {role!r}")
            if fixed and fixed not in kept:
                kept.append(fixed)
        member["specialRoles"] = kept
    return changes


def _is_filled(document: Dict[str, Any]) -> bool:
    return any(document.get(key) for key in ("analysts", "committees", "committeeMembers"))


def setup_site(data_dir: Path, site: Site, store=None) -> Dict[str, Any]:
    """Write the templates for one site and return the state flags recorded."""

    raw_path = snapshot_path(data_dir, site.name, ANALYST_COMMITTEE_RAW)
    llm_path = snapshot_path(data_dir, site.name, ANALYST_COMMITTEE_LLM)

    html = {"analystsHtml": "", "committeeHtml": ""}
    if raw_path.exists():
        try:
            html.update(read_json(raw_path).get("html") or {})
        except SnapshotError as exc:
            logger.warning("[%s] Ignoring unreadable %s: %s", site.name, raw_path, exc)
    write_snapshot(data_dir, site.name, ANALYST_COMMITTEE_RAW, raw_template(site.name, html["analystsHtml"], html["committeeHtml"]))

    document: Dict[str, Any] = llm_template(site.name)
    if llm_path.exists():
        document = read_json(llm_path)
        if _is_filled(document):
            for change in normalize_member_roles(document.get("committeeMembers") or []):
                logger.info("[%s] %s", site.name, change)
            write_json(llm_path, stamp(ANALYST_COMMITTEE_LLM, document))
        else:
            logger.info("[%s] %s exists and is still empty", site.name, llm_path)
    else:
        write_snapshot(data_dir, site.name, ANALYST_COMMITTEE_LLM, document)

    flags = {
        "has_analysts_list": bool(document.get("analysts") or html["analystsHtml"]),
        "has_committee_composition": bool(
            document.get("committees") or document.get("committeeMembers") or html["committeeHtml"]
        ),
        "raw_data_path": str(raw_path),
        "llm_json_path": str(llm_path),
    }
    flags["llm_complete"] = _is_filled(document) or not (
        flags["has_analysts_list"] or flags["has_committee_composition"]
    )
    if store is not None:
        store.ensure_site(site.destination, site.as_config())
        store.update_site(site.destination, **flags)
    return flags


def setup_analyst_committee(ctx: OperationContext) -> bool:
    for site in ctx.all_sites or (ctx.site,):
        flags = setup_site(ctx.data_dir, site, ctx.store)
        print(f"{site.name}: fill in {flags['llm_json_path']} using {flags['raw_data_path']}")
    return True


def clean_document(text: str) -> Dict[str, Any]:
    """Parse a curated export and drop the template and HTML keys.

    Falls back to cutting ``"html": {...}`` out of the text when the raw HTML
    broke the JSON.
    """

    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        stripped = _HTML_LAST.sub("", _HTML_WITH_COMMA.sub("", text))
        document = json.loads(stripped)
    for key in TEMPLATE_KEYS:
        document.pop(key, None)
    document.pop("html", None)
    for entry in document.get("sites") or []:
        if isinstance(entry, dict):
            entry.pop("html", None)
    return document


def clean_sites(data_dir: Path, sites: Sequence[Site]) -> int:
    cleaned = 0
    for site in sites:
        path = snapshot_path(data_dir, site.name, ANALYST_COMMITTEE_LLM)
        if not path.exists():
            logger.warning("[%s] File not found: %s", site.name, path)
            continue
        try:
            document = clean_document(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("[%s] Could not clean or parse %s: %s", site.name, path, exc)
            continue
        write_json(path, document)
        cleaned += 1
        logger.info("[%s] Cleaned %s", site.name, path)
    return cleaned


def clean_analyst_committee(ctx: OperationContext) -> bool:
    sites = list(ctx.all_sites or (ctx.site,))
    cleaned = clean_sites(ctx.data_dir, sites)
    print(f"Cleaned {cleaned} of {len(sites)} analyst/committee files")
    return True
