import json

import pytest

from q4_migration.errors import SnapshotError
from q4_migration.snapshots import (
    FAQ,
    LINK_UPDATES,
    LOOKUP_LIST,
    PERSONS,
    SCHEMA_VERSION,
    load_snapshot,
    snapshot_path,
    validate_snapshot,
    write_snapshot,
)


class TestSnapshots:
    def test_written_snapshot_carries_version_and_kind(self, tmp_path):
        path = write_snapshot(tmp_path, "Acme Corp", FAQ, {"faqLists": []})
        assert path == tmp_path / "Acme_Corp" / "faq.json"
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["schemaVersion"] == SCHEMA_VERSION
        assert document["kind"] == FAQ

    def test_paths_per_kind(self, tmp_path):
        assert snapshot_path(tmp_path, "Acme", PERSONS) == tmp_path / "Acme" / "persons" / "persons.json"
        assert snapshot_path(tmp_path, "Acme", LOOKUP_LIST) == tmp_path / "Acme" / "lookup_list.json"

    def test_scraped_records_survive_a_reload(self, tmp_path):
        lists = [
            {"listId": "1", "listName": "Frequently Asked Questions", "questionCount": 2,
             "questions": [{"questionId": "q1", "question": "Where?", "answer": "<p>Here</p>"},
                           {"questionId": "q2", "question": "When?", "answer": "<p>Now</p>"}]},
        ]
        write_snapshot(tmp_path, "Acme", FAQ, {"faqLists": lists})
        loaded = load_snapshot(tmp_path, "Acme", FAQ)
        assert [q["question"] for q in loaded["faqLists"][0]["questions"]] == ["Where?", "When?"]

    def test_stale_file_is_rejected(self, tmp_path):
        path = snapshot_path(tmp_path, "Acme", FAQ)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"faqLists": []}), encoding="utf-8")
        with pytest.raises(SnapshotError, match="schemaVersion"):
            load_snapshot(tmp_path, "Acme", FAQ)

    def test_wrong_kind_is_rejected(self):
        with pytest.raises(SnapshotError, match="expected a faq snapshot"):
            validate_snapshot(FAQ, {"schemaVersion": SCHEMA_VERSION, "kind": PERSONS, "faqLists": []})

    def test_item_keys_are_checked(self):
        document = {"schemaVersion": SCHEMA_VERSION, "kind": LINK_UPDATES, "updates": [{"oldPath": "a.pdf"}]}
        with pytest.raises(SnapshotError, match=r"updates\[0\] is missing newPath"):
            validate_snapshot(LINK_UPDATES, document)

    def test_write_refuses_incomplete_payload(self, tmp_path):
        with pytest.raises(SnapshotError):
            write_snapshot(tmp_path, "Acme", PERSONS, {"people": []})

    def test_missing_and_broken_files(self, tmp_path):
        with pytest.raises(SnapshotError, match="not found"):
            load_snapshot(tmp_path, "Acme", FAQ)
        path = snapshot_path(tmp_path, "Acme", FAQ)
        path.parent.mkdir(parents=True)
        path.write_text("{", encoding="utf-8")
        with pytest.raises(SnapshotError, match="parse"):
            load_snapshot(tmp_path, "Acme", FAQ)
