"""Attach curated committee memberships to scraped persons.

Reads ``persons/persons.json`` and ``analyst-committee-llm.json`` for a site
and writes ``persons/persons-merged.json``::

    merged, result = merge_documents(persons_doc, llm_doc, MatchThresholds())
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Tuple

from ..context import OperationContext, site_logger
from ..matching import (
    MatchResult,
    MatchThresholds,
    full_name,
    match_people,
    normalize_membership_role,
    normalize_name,
)
from ..snapshots import ANALYST_COMMITTEE_LLM, PERSONS, PERSONS_MERGED, load_snapshot, write_snapshot

logger = logging.getLogger(__name__)

MANAGEMENT_MARKER = "management"


def _committee_data(member: Dict[str, Any]) -> Dict[str, Any]:
    memberships = [
        {"name": entry.get("committee", ""), "role": normalize_membership_role(entry.get("membershipRole", ""))}
        for entry in member.get("committees") or []
        if entry.get("committee")
    ]
    return {"committeeMemberships": memberships, "specialRoles": list(member.get("specialRoles") or [])}


def _has_data(person: Dict[str, Any]) -> bool:
    return bool(person.get("committeeMemberships") or person.get("specialRoles"))


def merge_documents(
    persons_doc: Dict[str, Any],
    llm_doc: Dict[str, Any],
    thresholds: MatchThresholds = MatchThresholds(),
) -> Tuple[Dict[str, Any], MatchResult]:
    """Return the merged departments document and the match report."""

    persons: List[Dict[str, Any]] = []
    for department in persons_doc["departments"]:
        for person in department["persons"]:
            record = copy.deepcopy(person)
            record["department"] = department["name"]
            persons.append(record)

    result = match_people(persons, llm_doc.get("committeeMembers") or [], thresholds)
    for match in result.matches:
        match.person.update(_committee_data(match.member))

    # Repeated names (one person listed in several departments) share the
    # data of the first copy that received any.
    donors: Dict[str, Dict[str, Any]] = {}
    for person in persons:
        key = normalize_name(full_name(person))
        if _has_data(person) and key not in donors:
            donors[key] = person
    for person in persons:
        donor = donors.get(normalize_name(full_name(person)))
        if donor is not None and donor is not person and not _has_data(person):
            person["committeeMemberships"] = copy.deepcopy(donor.get("committeeMemberships", []))
            person["specialRoles"] = list(donor.get("specialRoles", []))

    departments: Dict[str, List[Dict[str, Any]]] = {}
    for person in persons:
        if MANAGEMENT_MARKER in person["department"].lower():
            person.pop("committeeMemberships", None)
            person.pop("specialRoles", None)
        departments.setdefault(person["department"], []).append(person)

    merged = {"departments": [{"name": name, "persons": members} for name, members in departments.items()]}
    return merged, result


def merge_person_data(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    persons_doc = load_snapshot(ctx.data_dir, ctx.site.name, PERSONS)
    llm_doc = load_snapshot(ctx.data_dir, ctx.site.name, ANALYST_COMMITTEE_LLM)

    merged, result = merge_documents(persons_doc, llm_doc, ctx.settings.thresholds)
    path = write_snapshot(ctx.data_dir, ctx.site.name, PERSONS_MERGED, merged)

    counts = result.counts()
    log.info(
        "Matched %d committee members (%s); wrote %s",
        len(result.matches),
        ", ".join(f"{kind}={count}" for kind, count in counts.items()) or "none",
        path,
    )
    for match in result.matches:
        if match.kind != "exact":
            log.debug("%s matched %r to %r (%.2f)", match.kind, full_name(match.person), match.member.get("name"), match.confidence)
    for member in result.unmatched_members:
        log.warning("No person found for committee member %r", member.get("name"))
    return True
