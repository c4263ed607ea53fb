"""Tests for the identity matching cascade."""

import pytest

from moodle_grader.models import DerivedStudentIdentity, RosterRow
from moodle_grader.services.matching import (
    IdentityMatcher, clean_folder_name, first_last_token, levenshtein_distance, similarity
)


def identity(full_name, folder_name=None):
    return DerivedStudentIdentity(full_name=full_name, folder_name=folder_name)


def roster(*names):
    return [RosterRow(identifier=f"id{i}", full_name=name) for i, name in enumerate(names, 1)]


@pytest.fixture
def matcher():
    return IdentityMatcher()


def test_exact_match_wins(matcher):
    rows = roster("Jane Smith", "John Doe")
    row, strategy = matcher.match_with_strategy(identity("jane  smith"), rows)

    assert row is rows[0]
    assert strategy == "exact"


def test_first_last_columns(matcher):
    rows = [RosterRow(identifier="id1", full_name="Smith, Jane", first_name="Jane", last_name="Smith")]
    row, strategy = matcher.match_with_strategy(identity("Jane Smith"), rows)

    assert row is rows[0]
    assert strategy == "first_last"


def test_last_first_folder_name_matches_first_last_roster(matcher):
    rows = roster("Jane Smith")
    row, strategy = matcher.match_with_strategy(identity("Smith, Jane"), rows)

    assert row is rows[0]
    assert strategy == "last_first"


def test_middle_name_matches_by_name_parts(matcher):
    rows = roster("John Doe", "Jane Smith")
    row, strategy = matcher.match_with_strategy(identity("Jane Marie Smith"), rows)

    assert row is rows[1]
    assert strategy == "name_parts"


def test_run_together_name_matches_by_substring(matcher):
    rows = roster("Jane Smith")
    row, strategy = matcher.match_with_strategy(identity("JaneSmith"), rows)

    assert row is rows[0]
    assert strategy == "normalized_substring"


def test_abbreviated_tokens_match(matcher):
    rows = roster("Mary Lee", "Jonathan Smith")
    row, strategy = matcher.match_with_strategy(identity("Jon Smithers"), rows)

    assert row is rows[1]
    assert strategy == "token_fuzzy"


def test_folder_name_used_when_derived_name_is_unusable(matcher):
    rows = roster("Mary Lee", "Jane Smith")
    row, strategy = matcher.match_with_strategy(
        identity("Zed", folder_name="Jane_Smith_101_assignsubmission_file"), rows
    )

    assert row is rows[1]
    assert strategy == "folder_cleanup"


def test_first_last_token_ignores_middle_tokens():
    rows = roster("Jane Smith")
    assert first_last_token(identity("Jane Q Smith"), rows) is rows[0]
    assert first_last_token(identity("Jane"), rows) is None


def test_misspelled_name_matches_by_edit_distance(matcher):
    rows = roster("Sarah Lee", "Michael Johnson")
    row, strategy = matcher.match_with_strategy(identity("Micheal Johnsen"), rows)

    assert row is rows[1]
    assert strategy == "edit_distance"


def test_unknown_student_has_no_match(matcher):
    assert matcher.match_with_strategy(identity("Zed"), roster("Jane Smith")) == (None, None)
    assert matcher.match(identity("Jane Smith"), []) is None


def test_levenshtein_and_similarity():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert similarity("abc", "abc") == 1.0
    assert similarity("", "") == 0.0
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_clean_folder_name():
    assert clean_folder_name("Jane_Smith_101_assignsubmission_file") == "jane smith"
    assert clean_folder_name("John-Doe_onlinetext_") == "john doe"
