"""Per-site run state persisted to ``data/state/site_status.json``.

The store is an ordinary object constructed by the command line entry point
and handed to the orchestrator and to each operation. Persistence goes
through a small port so tests can keep everything in memory::

    store = StateStore(JsonFileStatePort(Path("data/state/site_status.json")))
    store.load()
    store.set_login_status("acme", LOGGED_IN)
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

LOGGED_OUT = "logged-out"
LOGGING_IN = "logging-in"
LOGGED_IN = "logged-in"
LOGIN_FAILED = "login-failed"

NOT_STARTED = "not-started"
PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

DEFAULT_MAX_CONCURRENT_SITES = 6

# attribute name -> key in the JSON file
_SITE_KEYS = {
    "config": "config",
    "login_status": "loginStatus",
    "current_operation": "currentOperation",
    "operation_status": "operationStatus",
    "last_error": "lastError",
    "last_updated": "lastUpdated",
    "dashboard_verified": "dashboardVerified",
    "llm_complete": "llmComplete",
    "llm_json_path": "llmJsonPath",
    "raw_data_path": "rawDataPath",
    "has_analysts_list": "hasAnalystsList",
    "has_committee_composition": "hasCommitteeComposition",
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SiteState:
    config: Dict[str, str] = field(default_factory=dict)
    login_status: str = LOGGED_OUT
    current_operation: Optional[str] = None
    operation_status: str = NOT_STARTED
    last_error: Optional[str] = None
    last_updated: Optional[str] = None
    dashboard_verified: bool = False
    llm_complete: bool = False
    llm_json_path: Optional[str] = None
    raw_data_path: Optional[str] = None
    has_analysts_list: bool = False
    has_committee_composition: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {_SITE_KEYS[name]: value for name, value in asdict(self).items()}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SiteState":
        reverse = {key: name for name, key in _SITE_KEYS.items()}
        values = {reverse[key]: value for key, value in data.items() if key in reverse}
        return cls(**values)


@dataclass
class GlobalState:
    active_sites: int = 0
    max_concurrent_sites: int = DEFAULT_MAX_CONCURRENT_SITES
    last_updated: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "activeSites": self.active_sites,
            "maxConcurrentSites": self.max_concurrent_sites,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GlobalState":
        return cls(
            active_sites=int(data.get("activeSites", 0)),
            max_concurrent_sites=int(data.get("maxConcurrentSites", DEFAULT_MAX_CONCURRENT_SITES)),
            last_updated=data.get("lastUpdated"),
        )


class StatePort(Protocol):
    def read(self) -> Optional[Dict[str, Any]]:
        ...

    def write(self, document: Dict[str, Any]) -> None:
        ...


class JsonFileStatePort:
    """Reads and rewrites the run-state JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return None

    def write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")


class MemoryStatePort:
    """Keeps the last written document in memory."""

    def __init__(self, document: Optional[Dict[str, Any]] = None) -> None:
        self.document = document
        self.writes = 0

    def read(self) -> Optional[Dict[str, Any]]:
        return json.loads(json.dumps(self.document)) if self.document is not None else None

    def write(self, document: Dict[str, Any]) -> None:
        self.document = json.loads(json.dumps(document))
        self.writes += 1


class StateStore:
    """Thread-safe owner of the global and per-site run state."""

    def __init__(self, port: StatePort, clock: Callable[[], str] = _utc_now) -> None:
        self._port = port
        self._clock = clock
        self._lock = threading.RLock()
        self.global_state = GlobalState()
        self.sites: Dict[str, SiteState] = {}

    # ---- persistence -------------------------------------------------

    def load(self) -> None:
        document = self._port.read() or {}
        with self._lock:
            self.global_state = GlobalState.from_json(document.get("global", {}))
            self.sites = {
                dest: SiteState.from_json(data)
                for dest, data in document.get("sites", {}).items()
            }

    def to_json(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "global": self.global_state.to_json(),
                "sites": {dest: state.to_json() for dest, state in self.sites.items()},
            }

    def _save(self) -> None:
        now = self._clock()
        self.global_state.last_updated = now
        self._port.write(self.to_json())

    # ---- site records ------------------------------------------------

    def get_site(self, destination: str) -> Optional[SiteState]:
        with self._lock:
            return self.sites.get(destination)

    def ensure_site(self, destination: str, config: Optional[Dict[str, str]] = None) -> SiteState:
        with self._lock:
            state = self.sites.get(destination)
            if state is None:
                state = SiteState(config=dict(config or {}), last_updated=self._clock())
                self.sites[destination] = state
                self._save()
            elif config and state.config != config:
                state.config = dict(config)
                self._save()
            return state

    def update_site(self, destination: str, **changes: Any) -> SiteState:
        valid = {f.name for f in fields(SiteState)}
        unknown = set(changes) - valid
        if unknown:
            raise KeyError(f"Unknown site state fields: {', '.join(sorted(unknown))}")
        with self._lock:
            state = self.sites.setdefault(destination, SiteState())
            for name, value in changes.items():
                setattr(state, name, value)
            state.last_updated = self._clock()
            self._save()
            return state

    def set_login_status(self, destination: str, status: str, error: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"login_status": status}
        if status == LOGGED_IN:
            changes["dashboard_verified"] = True
            changes["last_error"] = None
        elif status == LOGIN_FAILED:
            changes["dashboard_verified"] = False
            changes["last_error"] = error
        self.update_site(destination, **changes)

    def start_operation(self, destination: str, operation: str) -> None:
        self.update_site(
            destination,
            current_operation=operation,
            operation_status=RUNNING,
            last_error=None,
        )

    def finish_operation(self, destination: str, ok: bool, error: Optional[str] = None) -> None:
        self.update_site(
            destination,
            operation_status=COMPLETED if ok else FAILED,
            last_error=None if ok else error,
        )

    def mark_pending(self, destination: str, operation: str) -> None:
        self.update_site(destination, current_operation=operation, operation_status=PENDING)

    # ---- global counters ---------------------------------------------

    def set_max_concurrent_sites(self, value: int) -> None:
        with self._lock:
            self.global_state.max_concurrent_sites = value
            self._save()

    def adjust_active_sites(self, delta: int) -> int:
        with self._lock:
            self.global_state.active_sites = max(0, self.global_state.active_sites + delta)
            self._save()
            return self.global_state.active_sites
