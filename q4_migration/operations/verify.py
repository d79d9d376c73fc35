"""Report FAQ questions that were scraped without an answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from ..context import OperationContext
from ..errors import SnapshotError
from ..snapshots import FAQ, SCHEMAS, load_snapshot_file

logger = logging.getLogger(__name__)


@dataclass
class FaqReport:
    site: str
    empty: List[Tuple[str, str]] = field(default_factory=list)


def empty_answers(document: Dict) -> List[Tuple[str, str]]:
    return [
        (faq_list["listName"], question.get("question", ""))
        for faq_list in document["faqLists"]
        for question in faq_list["questions"]
        if not (question.get("answer") or "").strip()
    ]


def scan_faqs(data_dir: Path) -> List[FaqReport]:
    """One report per site directory that holds a readable ``faq.json``."""

    reports: List[FaqReport] = []
    for directory in sorted(path for path in Path(data_dir).iterdir() if path.is_dir()):
        path = directory.joinpath(*SCHEMAS[FAQ].relative_path)
        if not path.exists():
            continue
        try:
            document = load_snapshot_file(path, FAQ)
        except SnapshotError as exc:
            logger.warning("Could not read FAQ data for %s: %s", directory.name, exc)
            continue
        reports.append(FaqReport(directory.name, empty_answers(document)))
    return reports


def verify_faqs(ctx: OperationContext) -> bool:
    if not ctx.data_dir.is_dir():
        logger.warning("No site data found in %s", ctx.data_dir)
        return False
    reports = scan_faqs(ctx.data_dir)
    if not reports:
        logger.warning("No FAQ snapshots found in %s", ctx.data_dir)
        return False

    total = sum(len(report.empty) for report in reports)
    print(f"FAQ verification: {len(reports)} sites, {total} empty answers")
    for report in reports:
        print(f"  {report.site}: {len(report.empty)} empty")
        for list_name, question in report.empty:
            print(f"    [{list_name}] {question}")
    return True
