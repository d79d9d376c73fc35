from q4_migration.matching import MatchThresholds
from q4_migration.operations.merge import merge_documents, merge_person_data
from q4_migration.snapshots import ANALYST_COMMITTEE_LLM, PERSONS, PERSONS_MERGED, load_snapshot, write_snapshot
from tests.fakes import make_context

PERSONS_DOC = {
    "departments": [
        {
            "name": "Board of Directors",
            "persons": [
                {"firstName": "Ann", "lastName": "Lee", "title": "Chair"},
                {"firstName": "Robert", "lastName": "Stone Jr.", "title": "Director"},
                {"firstName": "Cara", "lastName": "Diaz", "title": "Director"},
            ],
        },
        {
            "name": "Executive Management",
            "persons": [{"firstName": "Ann", "lastName": "Lee", "title": "CEO"}],
        },
        {
            "name": "Advisory Council",
            "persons": [{"firstName": "Ann", "lastName": "Lee", "title": "Advisor"}],
        },
    ]
}

LLM_DOC = {
    "siteName": "Acme Corp",
    "analysts": [],
    "committees": ["Audit", "Compensation"],
    "committeeMembers": [
        {
            "name": "Ann Lee",
            "committees": [{"committee": "Audit", "membershipRole": "chairperson"}],
            "specialRoles": ["Board Chair"],
        },
        {
            "name": "Robert Stone",
            "committees": [{"committee": "Compensation", "membershipRole": "member"}],
            "specialRoles": [],
        },
        {"name": "Zed Unknown", "committees": [], "specialRoles": []},
    ],
}


def _people(merged, department):
    return next(d["persons"] for d in merged["departments"] if d["name"] == department)


def test_matched_persons_receive_memberships():
    merged, result = merge_documents(PERSONS_DOC, LLM_DOC)
    ann, robert, cara = _people(merged, "Board of Directors")
    assert ann["committeeMemberships"] == [{"name": "Audit", "role": "Committee Chair"}]
    assert ann["specialRoles"] == ["Board Chair"]
    assert ann["department"] == "Board of Directors"
    assert robert["committeeMemberships"] == [{"name": "Compensation", "role": "Committee Member"}]
    assert "committeeMemberships" not in cara
    assert [m["name"] for m in result.unmatched_members] == ["Zed Unknown"]
    assert result.counts() == {"exact": 1, "normalized": 1}


def test_duplicates_share_data_except_in_management():
    merged, _ = merge_documents(PERSONS_DOC, LLM_DOC)
    advisor = _people(merged, "Advisory Council")[0]
    assert advisor["committeeMemberships"] == [{"name": "Audit", "role": "Committee Chair"}]
    executive = _people(merged, "Executive Management")[0]
    assert "committeeMemberships" not in executive
    assert "specialRoles" not in executive


def test_input_document_is_not_mutated():
    merge_documents(PERSONS_DOC, LLM_DOC)
    assert "department" not in PERSONS_DOC["departments"][0]["persons"][0]


def test_thresholds_change_the_outcome():
    persons = {"departments": [{"name": "Board", "persons": [{"firstName": "John A.", "lastName": "Smith"}]}]}
    llm = dict(LLM_DOC, committeeMembers=[{"name": "John Smith", "committees": [], "specialRoles": ["Director"]}])
    _, loose = merge_documents(persons, llm)
    _, strict = merge_documents(persons, llm, MatchThresholds(fuzzy_high=0.95, fuzzy_low=0.9))
    assert loose.counts() == {"fuzzy-low": 1}
    assert strict.counts() == {"ordered": 1}


def test_merge_person_data_writes_snapshot(tmp_path):
    ctx = make_context(tmp_path)
    write_snapshot(tmp_path, ctx.site.name, PERSONS, PERSONS_DOC)
    write_snapshot(tmp_path, ctx.site.name, ANALYST_COMMITTEE_LLM, LLM_DOC)

    assert merge_person_data(ctx)
    merged = load_snapshot(tmp_path, ctx.site.name, PERSONS_MERGED)
    assert [d["name"] for d in merged["departments"]] == [
        "Board of Directors",
        "Executive Management",
        "Advisory Council",
    ]
