"""Site registry and admin URL helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import ConfigError

ADMIN_HOST_TEMPLATE = "https://{subdomain}.s4.q4web.com"
LOGIN_PATH = "/admin/login.aspx"
ASPX_LISTING_PATH = "/admin/default.aspx"
STUDIO_PATH = "/admin/studio/#/"

SECTION_PRESS_RELEASES = "de305d4f-2c81-4acf-975a-b859e43248c8"
SECTION_EVENTS = "044fae0a-869c-4ca8-912b-be1a292400c0"
SECTION_FINANCIALS = "a485c91e-b42c-4337-aa04-dce8806e2f07"
SECTION_PRESENTATIONS = "d67c52db-ae0f-44ef-b62c-e2c8946192d6"
SECTION_PERSONS = "08832295-eb3f-4dae-9c93-8435ba7ed7d2"
SECTION_FAQ = "6584af41-0d20-43ea-bb53-770a526ad11e"
SECTION_DOWNLOADS = "184b727d-3857-4ca6-b4fc-6436fb81ca30"
SECTION_DEPARTMENTS = "e75c9967-5a03-4708-98a9-c9f83b19786f"
SECTION_LOOKUPS = "00bbf942-b2c8-4bf8-9c40-76e2cc1ff0c7"

GOVERNANCE_REPORT_TYPE = "a880db05-d76d-4442-811f-4cbf4e47d762"


@dataclass(frozen=True)
class Site:
    name: str
    source: str
    destination: str

    def as_config(self) -> Dict[str, str]:
        return {"name": self.name, "source": self.source, "destination": self.destination}


def load_sites(path: Path) -> List[Site]:
    """Read ``{"sites": [{name, source, destination}]}`` (or a bare list)."""

    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Site registry not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Site registry {path} is not valid JSON: {exc}") from exc

    entries = document.get("sites") if isinstance(document, dict) else document
    if not isinstance(entries, list):
        raise ConfigError(f"Site registry {path} must contain a list of sites")

    sites: List[Site] = []
    for index, entry in enumerate(entries):
        missing = [key for key in ("name", "source", "destination") if not isinstance(entry, dict) or key not in entry]
        if missing:
            raise ConfigError(f"Site #{index} in {path} is missing: {', '.join(missing)}")
        sites.append(Site(str(entry["name"]), str(entry["source"]), str(entry["destination"])))
    return sites


def select_sites(sites: Sequence[Site], names: Optional[Iterable[str]] = None) -> List[Site]:
    """Filter by name, source or destination; an empty filter keeps every site."""

    wanted = [name.lower() for name in names or []]
    if not wanted:
        return list(sites)
    chosen = [
        site
        for site in sites
        if site.name.lower() in wanted
        or site.source.lower() in wanted
        or site.destination.lower() in wanted
    ]
    if not chosen:
        raise ConfigError(f"No registered site matches: {', '.join(names or [])}")
    return chosen


def admin_url(subdomain: str, path: str = "") -> str:
    return ADMIN_HOST_TEMPLATE.format(subdomain=subdomain) + path


def aspx_section_url(subdomain: str, section_id: str, **params: str) -> str:
    query = "".join(f"{key}={value}&" for key, value in params.items())
    return admin_url(subdomain, f"{ASPX_LISTING_PATH}?{query}LanguageId=1&SectionId={section_id}")


def studio_url(subdomain: str, route: str) -> str:
    return admin_url(subdomain, STUDIO_PATH + route)


def safe_dir_name(name: str) -> str:
    """Strip characters that are awkward in paths and turn spaces into ``_``."""

    cleaned = re.sub(r"[^a-zA-Z0-9\-_ ]", "", name)
    return re.sub(r"\s+", "_", cleaned)
