import json

from q4_migration.operations.analyst_committee import (
    clean_document,
    clean_sites,
    normalize_member_roles,
    setup_site,
)
from q4_migration.sites import Site
from q4_migration.snapshots import ANALYST_COMMITTEE_LLM, ANALYST_COMMITTEE_RAW, read_json, snapshot_path
from q4_migration.state import MemoryStatePort, StateStore

SITE = Site("Acme Corp", "acme20", "acme25")


def test_special_roles_leave_memberships():
    members = [
        {
            "name": "Ann Lee",
            "committees": [
                {"committee": "Audit", "membershipRole": "Financial Expert"},
                {"committee": "Risk", "membershipRole": "chair"},
                {"committee": "Pay", "membershipRole": "Committee Member"},
            ],
            "specialRoles": ["Finacial Expert", "Nonsense xyz"],
        }
    ]
    changes = normalize_member_roles(members)
    ann = members[0]
    assert [c["membershipRole"] for c in ann["committees"]] == [
        "Committee Member",
        "Committee Chair",
        "Committee Member",
    ]
    assert ann["specialRoles"] == ["Financial Expert"]
    assert len(changes) == 4


def test_setup_writes_templates_and_flags(tmp_path):
    store = StateStore(MemoryStatePort())
    flags = setup_site(tmp_path, SITE, store)

    raw = read_json(snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_RAW))
    assert raw["html"] == {"analystsHtml": "", "committeeHtml": ""}
    assert "instructions" in raw
    llm = read_json(snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_LLM))
    assert llm["analysts"] == [] and llm["schemaVersion"] == 1
    assert flags["llm_complete"] is True
    assert store.get_site("acme25").llm_json_path == flags["llm_json_path"]


def test_setup_keeps_html_and_curated_data(tmp_path):
    raw_path = snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_RAW)
    raw_path.parent.mkdir(parents=True)
    raw_path.write_text(json.dumps({"html": {"analystsHtml": "<table></table>", "committeeHtml": ""}}))
    llm_path = snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_LLM)
    curated = {
        "siteName": SITE.name,
        "analysts": [{"analyst": "Jo", "firm": "Ex"}],
        "committees": [],
        "committeeMembers": [{"name": "Ann", "committees": [{"committee": "Audit", "membershipRole": "CEO"}]}],
    }
    llm_path.write_text(json.dumps(curated))

    flags = setup_site(tmp_path, SITE)

    assert read_json(raw_path)["html"]["analystsHtml"] == "<table></table>"
    saved = read_json(llm_path)
    assert saved["analysts"] == curated["analysts"]
    assert saved["committeeMembers"][0]["specialRoles"] == ["CEO"]
    assert flags["has_analysts_list"] and flags["llm_complete"]


def test_setup_reports_incomplete_when_html_but_no_data(tmp_path):
    raw_path = snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_RAW)
    raw_path.parent.mkdir(parents=True)
    raw_path.write_text(json.dumps({"html": {"analystsHtml": "", "committeeHtml": "<div/>"}}))
    flags = setup_site(tmp_path, SITE)
    assert flags["has_committee_composition"]
    assert flags["llm_complete"] is False


def test_clean_document_drops_template_keys():
    text = json.dumps({"instructions": "x", "analystsExample": [], "siteName": "A", "analysts": [], "html": {"a": 1}})
    assert clean_document(text) == {"siteName": "A", "analysts": []}


def test_clean_document_cuts_broken_html():
    text = '{"siteName": "A", "html": {"analystsHtml": "<p class="x">"}, "analysts": []}'
    assert clean_document(text) == {"siteName": "A", "analysts": []}


def test_clean_sites_counts_cleaned_files(tmp_path):
    other = Site("Other Inc", "oth20", "oth25")
    path = snapshot_path(tmp_path, SITE.name, ANALYST_COMMITTEE_LLM)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"siteName": "Acme Corp", "llmComplete": True, "analysts": []}))
    assert clean_sites(tmp_path, [SITE, other]) == 1
    assert read_json(path) == {"siteName": "Acme Corp", "analysts": []}
