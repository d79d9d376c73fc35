"""Departments, committees, photos and persons on the destination site.

``migrate-all-persons`` chains the steps in dependency order and stops at
the first one that fails.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Frame, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .. import sites
from ..context import OperationContext, site_logger
from ..errors import MigrationError, NavigationError
from ..matching import DEFAULT_MEMBERSHIP_ROLE, normalize_committee_name, normalize_name
from ..retrying import backoff, retry_until
from ..session import wait_for_page_ready
from ..snapshots import ANALYST_COMMITTEE_LLM, PERSONS, PERSONS_MERGED, load_snapshot
from .delete import person_departments
from .merge import merge_person_data
from .scrape import photo_file_name

logger = logging.getLogger(__name__)

SUCCESS_TEXT = "The item was saved successfully"
SPINNER = ".nui-spinner"

# ---- departments ------------------------------------------------------------

DEPARTMENT_ROWS = "table.grid-list tr:not(.DataGridHeader)"
DEPARTMENT_ADD = '[id$="_btnAddNew_submitButton"]'
DEPARTMENT_NAME_INPUT = '[id$="_txtDepartmentName"]'
DEPARTMENT_SAVE = '[id$="_btnSave"]'


def read_departments(page: Page) -> List[Dict[str, str]]:
    return page.evaluate(
        """(selector) => Array.from(document.querySelectorAll(selector)).map(row => {
            const name = row.querySelector('td:nth-child(2)');
            const modified = row.querySelector('td:nth-child(3)');
            const status = row.querySelector('td:nth-child(4)');
            const edit = row.querySelector('td:nth-child(1) a');
            if (!name || !modified || !status || !edit) { return null; }
            return {
                name: (name.textContent || '').trim(),
                lastModifiedBy: (modified.textContent || '').trim(),
                status: (status.textContent || '').trim(),
                editUrl: edit.href,
            };
        }).filter(Boolean)""",
        DEPARTMENT_ROWS,
    )


def missing_departments(source: Sequence[str], existing: Sequence[Dict[str, str]]) -> List[str]:
    """Source names with no active department of the same name."""

    active = {row["name"] for row in existing if row["name"] and "Inactive" not in row["status"]}
    return [name for name in source if name not in active]


def create_department(page: Page, name: str) -> None:
    page.click(DEPARTMENT_ADD)
    wait_for_page_ready(page)
    page.fill(DEPARTMENT_NAME_INPUT, name)
    page.click(DEPARTMENT_SAVE)
    wait_for_page_ready(page)
    if page.get_by_text(SUCCESS_TEXT).count() == 0:
        raise MigrationError(f"No success message after saving department {name!r}")


def migrate_departments(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    source = [department["name"] for department in load_snapshot(ctx.data_dir, ctx.site.name, PERSONS)["departments"]]
    if not source:
        log.warning("Persons snapshot lists no departments")
        return False

    page = ctx.destination_page()
    url = sites.aspx_section_url(ctx.site.destination, sites.SECTION_DEPARTMENTS)

    def open_list() -> None:
        try:
            page.goto(url, wait_until="domcontentloaded")
            wait_for_page_ready(page)
            page.wait_for_selector("table.grid-list", timeout=10000)
        except PlaywrightError as exc:
            raise NavigationError("Department list did not load") from exc

    open_list()
    missing = missing_departments(source, read_departments(page))
    if not missing:
        log.info("All %d departments already exist", len(source))
        return True

    created = 0
    for name in missing:
        try:
            create_department(page, name)
            created += 1
            log.info("Created department %r", name)
        except (PlaywrightError, MigrationError) as exc:
            log.error("Could not create department %r: %s", name, exc)
        open_list()
    if created < len(missing):
        log.warning("%d departments could not be created", len(missing) - created)
    return created > 0


# ---- committees -------------------------------------------------------------

COMMITTEE_CREATE = ".nui-button.content-header_button.nui-button--citrus.nui-button--square"
COMMITTEE_ROWS = "tr.committee-page-table_body_row"
COMMITTEE_NAME = ".committee-page-table_col_committee-name-label"
COMMITTEE_STATUS = ".committee-page-table_col_status .nui-text"
COMMITTEE_NAME_INPUT = "#CommitteeListEditNameFieldInput"
COMMITTEE_SAVE = "#CommitteeListEditWorkflowActionSave"
PAGE_LOAD_ATTEMPTS = 3
PAGE_LOAD_BACKOFF = 5.0


def wait_for_spinner(page: Page, timeout: float = 30) -> None:
    if page.locator(SPINNER).count():
        page.wait_for_function(
            "(selector) => !document.querySelector(selector)", arg=SPINNER, timeout=timeout * 1000
        )


def load_studio_page(
    page: Page,
    url: str,
    is_ready: Callable[[Page], bool],
    *,
    sleep: Callable[[float], Any] = time.sleep,
) -> None:
    """Load a studio screen, retrying with a growing pause between attempts."""

    def attempt() -> bool:
        page.goto(url, wait_until="domcontentloaded", timeout=60000)
        page.wait_for_timeout(5000)
        wait_for_spinner(page)
        return is_ready(page)

    outcome = retry_until(
        attempt,
        stop=bool,
        attempts=PAGE_LOAD_ATTEMPTS,
        delay_for=lambda n: backoff(PAGE_LOAD_BACKOFF, n),
        sleep=sleep,
        exceptions=(PlaywrightError,),
        label=f"load {url}",
    )
    if not outcome.ok:
        raise NavigationError(f"Failed to load {url} after {PAGE_LOAD_ATTEMPTS} attempts") from outcome.error


def committee_list_ready(page: Page) -> bool:
    return page.locator(COMMITTEE_CREATE).count() > 0 and page.locator(COMMITTEE_NAME_INPUT).count() == 0


def read_committees(page: Page) -> List[str]:
    """Committee names that are not awaiting approval."""

    return page.evaluate(
        """(s) => Array.from(document.querySelectorAll(s.rows)).map(row => {
            const name = row.querySelector(s.name);
            const status = row.querySelector(s.status);
            const statusText = status ? (status.textContent || '').trim() : '';
            return statusText !== 'For Approval' && name ? (name.textContent || '').trim() : '';
        }).filter(Boolean)""",
        {"rows": COMMITTEE_ROWS, "name": COMMITTEE_NAME, "status": COMMITTEE_STATUS},
    )


def committees_to_create(wanted: Iterable[str], existing: Iterable[str]) -> List[str]:
    present = set(existing)
    result: List[str] = []
    for name in wanted:
        if name and name not in present and name not in result:
            result.append(name)
    return result


def create_committee(page: Page, name: str) -> None:
    page.click(COMMITTEE_CREATE)
    page.wait_for_selector(COMMITTEE_NAME_INPUT, state="visible", timeout=10000)
    page.fill(COMMITTEE_NAME_INPUT, name)
    page.click(COMMITTEE_SAVE)
    page.wait_for_selector(COMMITTEE_NAME_INPUT, state="hidden", timeout=10000)
    page.wait_for_timeout(1000)
    if not committee_list_ready(page):
        raise NavigationError("Did not return to the committee list after saving")


def migrate_committees(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    llm = load_snapshot(ctx.data_dir, ctx.site.name, ANALYST_COMMITTEE_LLM)
    wanted = [entry.get("committee", "") for entry in llm["committees"]]
    if not wanted:
        log.info("No committees to migrate")
        return True

    page = ctx.destination_page()
    url = sites.studio_url(ctx.site.destination, "committee-list")
    load_studio_page(page, url, committee_list_ready)
    pending = committees_to_create(wanted, read_committees(page))
    max_iterations = len(pending) * 2

    for iteration in range(1, max_iterations + 1):
        pending = committees_to_create(pending, read_committees(page))
        if not pending:
            break
        name = pending[0]
        log.info("Creating committee %r (iteration %d/%d)", name, iteration, max_iterations)
        try:
            if not committee_list_ready(page):
                load_studio_page(page, url, committee_list_ready)
            create_committee(page, name)
        except (PlaywrightError, MigrationError) as exc:
            log.error("Could not create committee %r: %s", name, exc)
            load_studio_page(page, url, committee_list_ready)

    pending = committees_to_create(pending, read_committees(page))
    if pending:
        log.error("Committees still missing: %s", ", ".join(pending))
    return not pending


# ---- photos -----------------------------------------------------------------

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")
DOC_MANAGER_WRAPPER = "#RadWindowWrapper__ctrl0_ctl07_dialogOpener1DocumentManager"
DOC_MANAGER_FRAME = "Window"
FOLDER_LABELS = "div.rtTemplate > span.folder + span"
NEW_FOLDER = 'li.rtbItem.rtbBtn.rtbGroupIn a[title="New Folder"]'
FOLDER_NAME_INPUT = "input.rwDialogInput.rfdDecorated"
POPUP_BUTTON = "a.rwPopupButton"
UPLOAD_TOOL = 'li.rtbItem.rtbBtn.rtbGroupEnd a[title="Upload"]'
UPLOAD_PANEL = "#RadFileExplorer1_asyncUpload1"
UPLOAD_OVERWRITE = "#RadFileExplorer1_chkOverwrite"
UPLOAD_FILE_INPUT = "#RadFileExplorer1_asyncUpload1file0"
UPLOAD_BUTTON_INPUT = "#RadFileExplorer1_btnUpload_input"
UPLOAD_BUTTON = "span#RadFileExplorer1_btnUpload"
UPLOAD_DIALOG_ID = "RadWindowWrapper_RadFileExplorer1_windowManagerfileExplorerUpload"
FILE_GRID_ROWS = "#RadFileExplorer1_grid_ctl00 tr.rgRow"
UPLOAD_VERIFY_SECONDS = 30


def image_files(directory: Path) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.iterdir() if path.suffix.lower() in IMAGE_SUFFIXES)


def open_document_manager(page: Page) -> Frame:
    page.evaluate(
        "() => window.OpenDocManager && window.OpenDocManager('_ctrl0_ctl07_dialogOpener1', '', '')"
    )
    page.wait_for_selector(DOC_MANAGER_WRAPPER)
    page.wait_for_selector(f'iframe[name="{DOC_MANAGER_FRAME}"]')
    page.wait_for_timeout(1000)
    frame = page.frame(name=DOC_MANAGER_FRAME)
    if frame is None:
        raise MigrationError("Document manager frame not found")
    return frame


def open_folder(frame: Frame, name: str) -> bool:
    labels = frame.locator(FOLDER_LABELS)
    for idx in range(labels.count()):
        label = labels.nth(idx)
        if label.inner_text().strip() == name:
            label.click()
            frame.wait_for_timeout(1000)
            return True
    return False


def create_folder(page: Page, department: str) -> None:
    frame = open_document_manager(page)
    open_folder(frame, "images")
    frame.click(NEW_FOLDER)
    frame.wait_for_selector(FOLDER_NAME_INPUT)
    frame.fill(FOLDER_NAME_INPUT, sites.safe_dir_name(department))
    frame.locator(POPUP_BUTTON, has_text="OK").first.click()
    frame.wait_for_timeout(2000)


def uploaded_files(frame: Frame) -> Dict[str, str]:
    rows = frame.evaluate(
        """(selector) => Array.from(document.querySelectorAll(selector))
            .filter(row => row.style.display !== 'none' && row.style.visibility !== 'hidden')
            .map(row => {
                const name = row.querySelector('.rfeFileExtension');
                const size = row.querySelector('td:nth-child(2)');
                return [name ? (name.textContent || '').trim() : '', size ? (size.textContent || '').trim() : ''];
            })""",
        FILE_GRID_ROWS,
    )
    return {name: size for name, size in rows}


def all_uploaded(listing: Dict[str, str], expected: Sequence[str]) -> bool:
    def positive(size: str) -> bool:
        digits = "".join(ch for ch in size if ch.isdigit() or ch == ".")
        try:
            return float(digits) > 0
        except ValueError:
            return False

    return all(name in listing and positive(listing[name]) for name in expected)


def upload_images(page: Page, department: str, files: Sequence[Path]) -> None:
    frame = open_document_manager(page)
    open_folder(frame, "images")
    if not open_folder(frame, sites.safe_dir_name(department)):
        raise MigrationError(f"Folder for {department!r} not found in the document manager")

    frame.click(UPLOAD_TOOL)
    frame.wait_for_selector(UPLOAD_PANEL)
    frame.evaluate("(selector) => { const box = document.querySelector(selector); if (box) { box.checked = true; } }", UPLOAD_OVERWRITE)
    frame.locator(UPLOAD_FILE_INPUT).set_input_files([str(path) for path in files])
    frame.wait_for_function(
        "(selector) => { const b = document.querySelector(selector); return b && !b.hasAttribute('disabled'); }",
        arg=UPLOAD_BUTTON_INPUT,
        timeout=30000,
    )

    def click_upload() -> bool:
        frame.click(UPLOAD_BUTTON)
        try:
            frame.wait_for_function(
                """(id) => {
                    const el = document.getElementById(id);
                    return el && (el.getAttribute('aria-hidden') === 'true' || el.style.display === 'none' || el.style.visibility === 'hidden');
                }""",
                arg=UPLOAD_DIALOG_ID,
                timeout=2000,
            )
        except PlaywrightTimeoutError:
            return False
        return True

    if not retry_until(click_upload, stop=bool, attempts=3, delay=2, label="upload click").ok:
        raise MigrationError("Upload dialog did not close after clicking upload")

    expected = [path.name for path in files]
    verified = retry_until(
        lambda: all_uploaded(uploaded_files(frame), expected),
        stop=bool,
        attempts=UPLOAD_VERIFY_SECONDS,
        delay=1,
        label="verify uploads",
    )
    if not verified.ok:
        raise MigrationError(f"Uploaded files for {department!r} did not appear in the file grid")


def migrate_images(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    departments = [d["name"] for d in load_snapshot(ctx.data_dir, ctx.site.name, PERSONS)["departments"]]
    if not departments:
        return True

    page = ctx.destination_page()
    page.on("dialog", lambda dialog: dialog.accept())
    landing = sites.aspx_section_url(ctx.site.destination, sites.SECTION_DEPARTMENTS)
    uploaded = skipped = failed = 0
    for department in departments:
        files = image_files(ctx.site_dir / "images" / sites.safe_dir_name(department))
        if not files:
            log.info("No images for %r, skipping", department)
            skipped += 1
            continue
        try:
            page.goto(landing, wait_until="networkidle")
            page.wait_for_timeout(2000)
            create_folder(page, department)
            page.goto(landing, wait_until="networkidle")
            upload_images(page, department, files)
            uploaded += 1
            log.info("Uploaded %d images for %r", len(files), department)
        except (PlaywrightError, MigrationError) as exc:
            failed += 1
            log.error("Image upload failed for %r: %s", department, exc)
    log.info("Images: %d uploaded, %d skipped, %d failed", uploaded, skipped, failed)
    return failed == 0


# ---- persons ----------------------------------------------------------------

PERSON_TABLE = "#_ctrl0_ctl19_UCPersons_dataGrid"
PERSON_DEPARTMENT_SELECT = "#_ctrl0_ctl19_ddlDepartment"
PERSON_CREATE = "#_ctrl0_ctl19_btnAddNew_submitButton"
MODULE_TITLE = 'span[id$="ModuleTitle"]'
PERSON_EDIT_TITLE = "Person Edit"
BOARD_MEMBER_CHECKBOX = "#_ctrl0_ctl19_chkPersonBoardMember"
BOARD_MEMBERSHIPS = "#chkPersonBoardMemberships"
PERSON_INPUTS = {
    "firstName": "#_ctrl0_ctl19_txtFirstName",
    "lastName": "#_ctrl0_ctl19_txtLastName",
    "title": "#_ctrl0_ctl19_txtTitle",
    "description": "#_ctrl0_ctl19_txtDescription",
    "careerHighlights": "#_ctrl0_ctl19_txtCareerHighlight",
}
PHOTO_INPUT = "#_ctrl0_ctl19_UCPhotoPath_txtImage"
THUMBNAIL_INPUT = "#_ctrl0_ctl19_UCThumbnailPath_txtImage"
SAVE_BUTTONS = (
    "#_ctrl0_ctl19_btnSave_submitButton",
    "#_ctrl0_ctl19_ctl00_btnSave",
    "#_ctrl0_ctl19_btnSave",
)
SAVE_SUCCESS = ".message.message-success"

# special role -> (checkbox label text, checkbox value)
BOARD_ROLES: Dict[str, Tuple[str, str]] = {
    "Lead Independent Director": ("Lead Independant Director", "LeadIndependentDirector"),
    "Independent Director": ("Independant Director", "IndependentDirector"),
    "Financial Expert": ("Financial Expert", "FinancialExpert"),
    "Board Chair": ("Board Chair", "Chair"),
    "Director": ("Director", "Director"),
    "Vice Board Chair": ("Vice Board Chair", "ViceBoardChair"),
    "CEO": ("CEO", "CEO"),
}


def board_role_targets(special_roles: Iterable[str]) -> List[Tuple[str, str]]:
    return [BOARD_ROLES[role] for role in special_roles if role in BOARD_ROLES]


def flatten_departments(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    persons: List[Dict[str, Any]] = []
    for department in document["departments"]:
        for person in department["persons"]:
            record = dict(person)
            record.setdefault("department", department["name"])
            persons.append(record)
    return persons


def person_image_path(images_root: Path, person: Dict[str, Any]) -> Optional[str]:
    """CMS path of the captured photo for ``person``, if one exists."""

    department_dir = sites.safe_dir_name(person.get("department", ""))
    prefix = Path(photo_file_name(person.get("firstName", ""), person.get("lastName", ""))).stem
    for path in image_files(images_root / department_dir):
        if path.name.lower().startswith(prefix):
            return f"files/images/{department_dir}/{path.name}"
    return None


def build_role_mapping(committees: Sequence[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
    """``{normalized committee: {normalized role label: radio id}}``."""

    mapping: Dict[str, Dict[str, str]] = {}
    for committee in committees:
        roles = mapping.setdefault(normalize_committee_name(committee["name"]), {})
        for role in committee["roles"]:
            roles[normalize_committee_name(role["label"])] = role["id"]
    return mapping


def role_radio_id(mapping: Dict[str, Dict[str, str]], committee: str, role: str) -> Optional[str]:
    roles = mapping.get(normalize_committee_name(committee))
    if roles is None:
        return None
    return roles.get(normalize_committee_name(role)) or roles.get(
        normalize_committee_name(DEFAULT_MEMBERSHIP_ROLE)
    )


def existing_person_keys(names: Iterable[str]) -> Set[str]:
    keys: Set[str] = set()
    for name in names:
        if "," in name:
            last, _, first = name.partition(",")
            name = f"{first} {last}"
        keys.add(normalize_name(name))
    return keys


def person_key(person: Dict[str, Any]) -> str:
    return normalize_name(f"{person.get('firstName', '')} {person.get('lastName', '')}")


def persons_to_create(persons: Sequence[Dict[str, Any]], existing: Dict[str, Set[str]]) -> List[Dict[str, Any]]:
    """Persons not yet listed in their own department; repeats within one department collapse."""

    seen = {department: set(keys) for department, keys in existing.items()}
    pending: List[Dict[str, Any]] = []
    for person in persons:
        keys = seen.setdefault(person.get("department", ""), set())
        key = person_key(person)
        if key in keys:
            continue
        keys.add(key)
        pending.append(person)
    return pending


def person_list_ready(page: Page) -> bool:
    return page.locator(PERSON_TABLE).count() > 0 and page.locator(PERSON_DEPARTMENT_SELECT).count() > 0


def read_person_names(page: Page) -> List[str]:
    return page.evaluate(
        """(selector) => Array.from(document.querySelectorAll(selector)).map(row => {
            const cell = row.querySelector('td.DataGridItemBorder');
            return cell ? (cell.textContent || '').trim() : '';
        }).filter(Boolean)""",
        f"{PERSON_TABLE} tr:not(:first-child)",
    )


def read_department_persons(page: Page, departments: Iterable[str]) -> Dict[str, Set[str]]:
    """Name keys already listed in each department's grid."""

    options = {name: value for value, name in person_departments(page)}
    existing: Dict[str, Set[str]] = {}
    for department in departments:
        value = options.get(department)
        if value is None:
            existing[department] = set()
            continue
        page.select_option(PERSON_DEPARTMENT_SELECT, value)
        wait_for_page_ready(page)
        existing[department] = existing_person_keys(read_person_names(page))
    return existing


def _set_value(page: Page, selector: str, value: str) -> None:
    page.evaluate(
        """([selector, value]) => {
            const el = document.querySelector(selector);
            if (el) { el.value = value; el.dispatchEvent(new Event('change', { bubbles: true })); }
        }""",
        [selector, value],
    )


def apply_board_membership(page: Page, special_roles: Sequence[str]) -> None:
    targets = board_role_targets(special_roles)
    if not special_roles:
        return
    if not page.is_checked(BOARD_MEMBER_CHECKBOX):
        page.evaluate(
            "(selector) => document.querySelector(selector).dispatchEvent(new MouseEvent('click', {bubbles: true, cancelable: true}))",
            BOARD_MEMBER_CHECKBOX,
        )
        page.wait_for_function(
            "([selector, text]) => { const el = document.querySelector(selector); return el && el.textContent === text; }",
            arg=[MODULE_TITLE, PERSON_EDIT_TITLE],
            timeout=30000,
        )
        page.wait_for_timeout(5000)
    page.wait_for_selector(BOARD_MEMBERSHIPS, state="visible", timeout=10000)
    for text, value in targets:
        clicked = page.evaluate(
            """([table, text, value]) => {
                const boxes = Array.from(document.querySelectorAll(table + ' input[type="checkbox"]'));
                const box = boxes.find(cb => cb.value === value && cb.parentElement && cb.parentElement.textContent.trim() === text);
                if (!box || box.disabled) { return false; }
                if (!box.checked) { box.parentElement.click(); }
                return true;
            }""",
            [BOARD_MEMBERSHIPS, text, value],
        )
        if not clicked:
            logger.warning("Board role checkbox %r not available", text)
        page.wait_for_timeout(500)


def read_committee_options(page: Page) -> List[Dict[str, Any]]:
    return page.evaluate(
        """() => Array.from(document.querySelectorAll('.committee_name-label')).map(label => {
            const options = label.nextElementSibling && label.nextElementSibling.querySelector('.committee_membership-options');
            const radios = options ? Array.from(options.querySelectorAll('input[type="radio"]')) : [];
            return {
                name: (label.textContent || '').trim(),
                roles: radios.map(radio => ({
                    id: radio.id,
                    label: radio.nextElementSibling ? (radio.nextElementSibling.textContent || '').trim() : '',
                })),
            };
        })"""
    )


def apply_committee_roles(page: Page, memberships: Sequence[Dict[str, str]], mapping: Dict[str, Dict[str, str]]) -> None:
    for membership in memberships:
        radio_id = role_radio_id(mapping, membership.get("name", ""), membership.get("role", ""))
        if radio_id is None:
            logger.warning("Committee %r not offered on the person form", membership.get("name"))
            continue
        page.evaluate(
            """(id) => {
                const radio = document.getElementById(id);
                if (radio && !radio.checked && !radio.disabled) {
                    radio.checked = true;
                    radio.dispatchEvent(new Event('change', { bubbles: true }));
                }
            }""",
            radio_id,
        )


def save_person(page: Page) -> bool:
    for selector in SAVE_BUTTONS:
        if page.locator(selector).count():
            page.click(selector)
            break
    else:
        raise MigrationError("Save button not found on the person form")
    page.wait_for_timeout(3000)
    try:
        page.wait_for_selector(SAVE_SUCCESS, timeout=10000)
    except PlaywrightTimeoutError:
        return False
    return "saved successfully" in page.locator(SAVE_SUCCESS).first.inner_text()


def create_person(page: Page, person: Dict[str, Any], images_root: Path, role_mapping: Dict[str, Dict[str, str]]) -> bool:
    page.click(PERSON_CREATE)
    page.wait_for_function(
        "([selector, text]) => { const el = document.querySelector(selector); return el && el.textContent === text; }",
        arg=[MODULE_TITLE, PERSON_EDIT_TITLE],
        timeout=10000,
    )
    apply_board_membership(page, person.get("specialRoles") or [])

    options = page.evaluate(
        "(selector) => Array.from(document.querySelector(selector).options).map(o => [o.text, o.value])",
        PERSON_DEPARTMENT_SELECT,
    )
    value = next((v for text, v in options if text == person.get("department")), None)
    if value is None:
        raise MigrationError(f"Department {person.get('department')!r} not found in dropdown")
    _set_value(page, PERSON_DEPARTMENT_SELECT, value)

    fields = dict(person)
    if person.get("suffix"):
        fields["firstName"] = f"{person.get('firstName', '')} {person['suffix']}"
    for key, selector in PERSON_INPUTS.items():
        if fields.get(key):
            _set_value(page, selector, fields[key])

    image = person_image_path(images_root, person)
    if image:
        _set_value(page, PHOTO_INPUT, image)
        _set_value(page, THUMBNAIL_INPUT, image)

    memberships = person.get("committeeMemberships") or []
    if memberships:
        if not role_mapping:
            role_mapping.update(build_role_mapping(read_committee_options(page)))
        apply_committee_roles(page, memberships, role_mapping)

    return save_person(page)


def migrate_persons(ctx: OperationContext) -> bool:
    log = site_logger(logger, ctx.site)
    persons = flatten_departments(load_snapshot(ctx.data_dir, ctx.site.name, PERSONS_MERGED))
    page = ctx.destination_page()
    url = sites.aspx_section_url(ctx.site.destination, sites.SECTION_PERSONS)
    load_studio_page(page, url, person_list_ready)

    departments = list(dict.fromkeys(person.get("department", "") for person in persons))
    pending = persons_to_create(persons, read_department_persons(page, departments))
    log.info("%d of %d persons need creating", len(pending), len(persons))
    load_studio_page(page, url, person_list_ready)

    role_mapping: Dict[str, Dict[str, str]] = {}
    failures = 0
    for index, person in enumerate(pending, start=1):
        name = f"{person.get('firstName', '')} {person.get('lastName', '')}".strip()
        log.info("Creating person %d/%d: %s (%s)", index, len(pending), name, person.get("department"))
        try:
            saved = create_person(page, person, ctx.site_dir / "images", role_mapping)
        except (PlaywrightError, MigrationError) as exc:
            log.error("Could not create %r: %s", name, exc)
            saved = False
        if not saved:
            failures += 1
            log.warning("Save of %r was not confirmed", name)
        load_studio_page(page, url, person_list_ready)
    log.info("Persons: %d created, %d unconfirmed", len(pending) - failures, failures)
    return True


# ---- chain ------------------------------------------------------------------


def migrate_all_persons(ctx: OperationContext, steps: Optional[Sequence[Tuple[str, Callable[[OperationContext], bool]]]] = None) -> bool:
    """Merge, then committees, departments, images and persons; stop on failure."""

    log = site_logger(logger, ctx.site)
    chain = steps or (
        ("merge person data", merge_person_data),
        ("committees", migrate_committees),
        ("departments", migrate_departments),
        ("images", migrate_images),
        ("persons", migrate_persons),
    )
    for label, step in chain:
        log.info("Migrate all persons: %s", label)
        if not step(ctx):
            log.error("Migrate all persons stopped: %s failed", label)
            return False
    return True
