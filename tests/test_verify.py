from q4_migration.operations.verify import empty_answers, scan_faqs, verify_faqs
from q4_migration.sites import Site
from q4_migration.snapshots import FAQ, snapshot_path, write_json, write_snapshot
from tests.fakes import make_context

FAQ_LISTS = [
    {
        "listName": "General",
        "questions": [
            {"question": "Where is HQ?", "answer": "<p>Here</p>"},
            {"question": "Who audits?", "answer": "  "},
            {"question": "Ticker?"},
        ],
    }
]


def test_empty_answers_lists_unanswered_questions():
    assert empty_answers({"faqLists": FAQ_LISTS}) == [("General", "Who audits?"), ("General", "Ticker?")]


def test_scan_skips_unreadable_and_missing(tmp_path):
    write_snapshot(tmp_path, "Acme Corp", FAQ, {"faqLists": FAQ_LISTS})
    write_json(snapshot_path(tmp_path, "Old Site", FAQ), {"faqLists": []})
    (tmp_path / "Empty_Site").mkdir()

    reports = scan_faqs(tmp_path)
    assert [report.site for report in reports] == ["Acme_Corp"]
    assert len(reports[0].empty) == 2


def test_verify_faqs_prints_summary(tmp_path, capsys):
    write_snapshot(tmp_path, "Acme Corp", FAQ, {"faqLists": FAQ_LISTS})
    assert verify_faqs(make_context(tmp_path))
    out = capsys.readouterr().out
    assert "1 sites, 2 empty answers" in out
    assert "[General] Who audits?" in out


def test_verify_faqs_without_data(tmp_path):
    assert not verify_faqs(make_context(tmp_path / "missing"))
    assert not verify_faqs(make_context(tmp_path, site=Site("A", "a20", "a25")))
