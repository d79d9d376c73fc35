import pytest

from q4_migration.matching import (
    EXACT,
    FUZZY_HIGH,
    FUZZY_LOW,
    NORMALIZED,
    ORDERED,
    MatchThresholds,
    closest,
    levenshtein,
    match_people,
    normalize_committee_name,
    normalize_membership_role,
    normalize_name,
    ordered_token_match,
    similarity,
)


def person(first, last):
    return {"firstName": first, "lastName": last}


def member(name):
    return {"name": name}


class TestPrimitives:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_similarity(self):
        assert similarity("", "") == 1.0
        assert similarity("john a smith", "john smith") == pytest.approx(10 / 12)

    def test_normalize_name_drops_punctuation_and_suffixes(self):
        assert normalize_name("  Robert  O'Neil, Jr. ") == "robert oneil"

    def test_ordered_tokens_skip_initials(self):
        assert ordered_token_match("John A. Smith", "John Smith") == 2
        assert ordered_token_match("Smith John", "John Smith") == 1


class TestMatchPeople:
    def test_stages_run_strictest_first(self):
        persons = [person("Ann", "Lee"), person("Bob", "Ray-Smith"), person("Catherine", "Jones")]
        members = [member("Katherine Jones"), member("bob raysmith"), member("Ann Lee")]
        result = match_people(persons, members)
        kinds = {m.member["name"]: (m.kind, m.confidence) for m in result.matches}
        assert kinds["Ann Lee"] == (EXACT, 1.0)
        assert kinds["bob raysmith"] == (NORMALIZED, 0.95)
        assert kinds["Katherine Jones"][0] == FUZZY_HIGH
        assert not result.unmatched_persons and not result.unmatched_members

    def test_matched_pairs_leave_both_pools(self):
        persons = [person("Ann", "Lee"), person("Ann", "Lee")]
        members = [member("Ann Lee")]
        result = match_people(persons, members)
        assert len(result.matches) == 1
        assert result.matches[0].person is persons[0]
        assert result.unmatched_persons == [persons[1]]

    def test_middle_initial_falls_to_fuzzy_low_at_default_thresholds(self):
        result = match_people([person("John A.", "Smith")], [member("John Smith")])
        assert [m.kind for m in result.matches] == [FUZZY_LOW]

    def test_ordered_rule_matches_when_fuzzy_stages_reject(self):
        thresholds = MatchThresholds(fuzzy_high=0.95, fuzzy_low=0.9, ordered_min_tokens=2)
        result = match_people([person("John A.", "Smith")], [member("John Smith")], thresholds)
        assert len(result.matches) == 1
        assert result.matches[0].kind == ORDERED
        assert result.matches[0].confidence == 0.9

    def test_ordered_rule_needs_enough_tokens(self):
        thresholds = MatchThresholds(fuzzy_high=0.95, fuzzy_low=0.9, ordered_min_tokens=3)
        result = match_people([person("John A.", "Smith")], [member("John Smith")], thresholds)
        assert result.matches == []

    def test_deterministic(self):
        persons = [person("Jon", "Smyth"), person("John", "Smith")]
        members = [member("John Smith"), member("Jon Smith")]
        first = [(m.person["firstName"], m.member["name"], m.kind) for m in match_people(persons, members).matches]
        second = [(m.person["firstName"], m.member["name"], m.kind) for m in match_people(persons, members).matches]
        assert first == second
        assert ("John", "John Smith", EXACT) in first

    def test_counts(self):
        result = match_people([person("Ann", "Lee")], [member("Ann Lee")])
        assert result.counts() == {EXACT: 1}

    def test_thresholds_are_validated(self):
        with pytest.raises(ValueError):
            MatchThresholds(fuzzy_high=0.7, fuzzy_low=0.8)


class TestRoleNormalization:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Chair", "Committee Chair"),
            ("committee-chair", "Committee Chair"),
            ("Vice Chair", "Vice Chair"),
            ("non member", "Non-Member"),
            ("Member", "Committee Member"),
        ],
    )
    def test_membership_roles(self, raw, expected):
        assert normalize_membership_role(raw) == expected

    def test_committee_names(self):
        assert normalize_committee_name("Nominating & Governance Committee") == "nominating governance"
        assert normalize_committee_name("Audit Comm.") == "audit"

    def test_closest(self):
        options = ["Committee Member", "Committee Chair", "Vice Chair", "Non-Member"]
        assert closest("committee chair", options) == "Committee Chair"
        assert closest("Commitee Chiar", options) == "Committee Chair"
        assert closest("zzz", options) is None
