"""The fixed set of operations the command line can run.

Each :class:`OperationKind` carries an :class:`OperationSpec` describing its
menu group and whether it runs once per site or once for the whole batch::

    kind = OperationKind.from_key("delete-faqs")
    ok = run_operation(kind, ctx)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from .context import OperationContext
from .operations import (
    analyst_committee,
    delete,
    links,
    merge,
    migrate_analysts,
    migrate_content,
    migrate_people,
    scrape,
    verify,
)

DELETE = "delete"
SCRAPE = "scrape"
MIGRATE = "migrate"
MISC = "misc"

SITE_SCOPE = "site"
GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class OperationSpec:
    key: str
    group: str
    description: str
    scope: str = SITE_SCOPE
    needs_source: bool = False


class OperationKind(Enum):
    DELETE_ALL = OperationSpec("delete-all", DELETE, "Delete all content types in sequence")
    DELETE_PERSONS = OperationSpec("delete-persons", DELETE, "Delete persons in every department")
    DELETE_FAQS = OperationSpec("delete-faqs", DELETE, "Delete questions from every FAQ list")
    DELETE_ANALYSTS = OperationSpec("delete-analysts", DELETE, "Delete analysts from the first analyst group")
    DELETE_COMMITTEES = OperationSpec("delete-committees", DELETE, "Delete committees")
    DELETE_DOWNLOADS = OperationSpec("delete-downloads", DELETE, "Delete governance downloads")
    DELETE_FINANCIALS = OperationSpec("delete-financials", DELETE, "Delete financial reports")
    DELETE_PRESENTATIONS = OperationSpec("delete-presentations", DELETE, "Delete presentations")
    DELETE_EVENTS = OperationSpec("delete-events", DELETE, "Delete events")
    DELETE_PRESS_RELEASES = OperationSpec("delete-prs", DELETE, "Delete press releases")

    SCRAPE_DOCUMENT_CATEGORIES = OperationSpec(
        "scrape-document-categories", SCRAPE, "Scrape document categories from the source site", needs_source=True
    )
    SCRAPE_FAQS = OperationSpec("scrape-faqs", SCRAPE, "Scrape FAQ lists from the source site", needs_source=True)
    SCRAPE_PERSONS = OperationSpec(
        "scrape-persons", SCRAPE, "Scrape persons and photos from the source site", needs_source=True
    )

    MIGRATE_DOCUMENT_CATEGORIES = OperationSpec(
        "migrate-document-categories", MIGRATE, "Create missing document categories"
    )
    MIGRATE_FAQS = OperationSpec("migrate-faqs", MIGRATE, "Create missing FAQ lists and questions")
    MIGRATE_ANALYSTS = OperationSpec("migrate-analysts", MIGRATE, "Enable analyst fields and create analysts")
    MIGRATE_PERSONS = OperationSpec("migrate-persons", MIGRATE, "Create persons from the merged person data")
    MIGRATE_IMAGES = OperationSpec("migrate-images", MIGRATE, "Upload person photos per department")
    MIGRATE_DEPARTMENTS = OperationSpec("migrate-departments", MIGRATE, "Create missing departments")
    MIGRATE_COMMITTEES = OperationSpec("migrate-committees", MIGRATE, "Create missing committees")
    MIGRATE_ALL_PERSONS = OperationSpec(
        "migrate-all-persons", MIGRATE, "Merge, then committees, departments, images and persons"
    )

    VERIFY_FAQS = OperationSpec("verify-faqs", MISC, "Count empty FAQ answers across all sites", GLOBAL_SCOPE)
    SETUP_ANALYST_COMMITTEE = OperationSpec(
        "setup-analysts-committee-json", MISC, "Write analyst/committee templates", GLOBAL_SCOPE
    )
    CLEAN_ANALYST_COMMITTEE = OperationSpec(
        "clean-analyst-committee-json", MISC, "Strip instructions and HTML from curated files", GLOBAL_SCOPE
    )
    MERGE_PERSON_DATA = OperationSpec("merge-person-data", MISC, "Attach committee data to scraped persons")
    UPDATE_PR_LINKS = OperationSpec("update-pr-links", MISC, "Rewrite links inside press releases")

    @property
    def spec(self) -> OperationSpec:
        return self.value

    @property
    def key(self) -> str:
        return self.value.key

    @classmethod
    def from_key(cls, key: str) -> "OperationKind":
        for kind in cls:
            if kind.key == key:
                return kind
        raise ValueError(f"Unknown operation: {key}")


def operation_keys() -> List[str]:
    return [kind.key for kind in OperationKind]


def grouped() -> Dict[str, List[OperationKind]]:
    groups: Dict[str, List[OperationKind]] = {}
    for kind in OperationKind:
        groups.setdefault(kind.spec.group, []).append(kind)
    return groups


def run_operation(kind: OperationKind, ctx: OperationContext) -> bool:
    match kind:
        case OperationKind.DELETE_ALL:
            return delete.delete_all(ctx)
        case OperationKind.DELETE_PERSONS:
            return delete.delete_persons(ctx)
        case OperationKind.DELETE_FAQS:
            return delete.delete_faqs(ctx)
        case OperationKind.DELETE_ANALYSTS:
            return delete.delete_analysts(ctx)
        case OperationKind.DELETE_COMMITTEES:
            return delete.delete_committees(ctx)
        case OperationKind.DELETE_DOWNLOADS:
            return delete.delete_downloads(ctx)
        case OperationKind.DELETE_FINANCIALS:
            return delete.delete_financials(ctx)
        case OperationKind.DELETE_PRESENTATIONS:
            return delete.delete_presentations(ctx)
        case OperationKind.DELETE_EVENTS:
            return delete.delete_events(ctx)
        case OperationKind.DELETE_PRESS_RELEASES:
            return delete.delete_press_releases(ctx)
        case OperationKind.SCRAPE_DOCUMENT_CATEGORIES:
            return scrape.scrape_document_categories(ctx)
        case OperationKind.SCRAPE_FAQS:
            return scrape.scrape_faqs(ctx)
        case OperationKind.SCRAPE_PERSONS:
            return scrape.scrape_persons(ctx)
        case OperationKind.MIGRATE_DOCUMENT_CATEGORIES:
            return migrate_content.migrate_document_categories(ctx)
        case OperationKind.MIGRATE_FAQS:
            return migrate_content.migrate_faqs(ctx)
        case OperationKind.MIGRATE_ANALYSTS:
            return migrate_analysts.migrate_analysts(ctx)
        case OperationKind.MIGRATE_PERSONS:
            return migrate_people.migrate_persons(ctx)
        case OperationKind.MIGRATE_IMAGES:
            return migrate_people.migrate_images(ctx)
        case OperationKind.MIGRATE_DEPARTMENTS:
            return migrate_people.migrate_departments(ctx)
        case OperationKind.MIGRATE_COMMITTEES:
            return migrate_people.migrate_committees(ctx)
        case OperationKind.MIGRATE_ALL_PERSONS:
            return migrate_people.migrate_all_persons(ctx)
        case OperationKind.VERIFY_FAQS:
            return verify.verify_faqs(ctx)
        case OperationKind.SETUP_ANALYST_COMMITTEE:
            return analyst_committee.setup_analyst_committee(ctx)
        case OperationKind.CLEAN_ANALYST_COMMITTEE:
            return analyst_committee.clean_analyst_committee(ctx)
        case OperationKind.MERGE_PERSON_DATA:
            return merge.merge_person_data(ctx)
        case OperationKind.UPDATE_PR_LINKS:
            return links.update_pr_links(ctx)
    raise ValueError(f"Unhandled operation: {kind}")
