"""Tests for bucket organization and identity derivation."""

import logging

from conftest import make_file
from moodle_grader.services.organizer import (
    CATCH_ALL_KEY, derive_identity, group_by_student, organize
)


def test_files_in_same_submission_folder_share_a_bucket():
    files = [
        make_file("Jane Smith_101_assignsubmission_file/essay.docx", b"a"),
        make_file("Jane Smith_101_assignsubmission_file/notes.txt", b"b"),
    ]

    buckets = organize(files)

    assert list(buckets) == ["Jane Smith_101_assignsubmission_file"]
    assert len(buckets["Jane Smith_101_assignsubmission_file"]) == 2


def test_nested_files_use_nearest_submission_folder():
    file = make_file("export/Jane Smith_101_assignsubmission_file/drafts/essay.docx", b"a")
    assert list(organize([file])) == ["Jane Smith_101_assignsubmission_file"]


def test_plain_parent_folder_is_the_key():
    file = make_file("Jane Smith/essay.docx", b"a")
    assert list(organize([file])) == ["Jane Smith"]


def test_flat_moodle_filenames_use_name_prefix():
    files = [
        make_file("Jane Smith_101_assignsubmission_file_essay.docx", b"a"),
        make_file("John Doe_102_onlinetext_onlinetext.html", b"b"),
    ]
    assert list(organize(files)) == ["Jane Smith_101", "John Doe_102"]


def test_all_files_in_catch_all_bucket_warns_but_continues(caplog):
    files = [make_file("essay.txt", b"a"), make_file("notes.txt", b"b")]

    with caplog.at_level(logging.WARNING, logger="moodle_grader.services.organizer"):
        buckets = organize(files)

    assert list(buckets) == [CATCH_ALL_KEY]
    assert len(buckets[CATCH_ALL_KEY]) == 2
    assert "catch-all" in caplog.text


def test_group_by_student_merges_plugin_folders():
    files = [
        make_file("Jane Smith_101_assignsubmission_file/essay.docx", b"a"),
        make_file("Jane Smith_101_assignsubmission_onlinetext/onlinetext.html", b"b"),
        make_file("John Doe_102_assignsubmission_file/essay.docx", b"c"),
    ]

    students = group_by_student(organize(files))

    assert list(students) == ["Jane Smith_101", "John Doe_102"]
    assert len(students["Jane Smith_101"]) == 2


def test_derive_identity_from_moodle_folder():
    identity = derive_identity("Jane Smith_101_assignsubmission_file")

    assert identity.full_name == "Jane Smith"
    assert identity.identifier == "101"
    assert identity.first_name == "Jane"
    assert identity.last_name == "Smith"
    assert identity.email == "jane.smith@example.com"
    assert identity.folder_name == "Jane Smith_101_assignsubmission_file"


def test_derive_identity_keeps_comma_for_last_first_names():
    identity = derive_identity("Smith, Jane_200_assignsubmission_file")

    assert identity.full_name == "Smith, Jane"
    assert identity.first_name == "Jane"
    assert identity.last_name == "Smith"
    assert identity.identifier == "200"


def test_derive_identity_strips_semester_prefix_and_trailers():
    identity = derive_identity("25SP John_Doe (late)")

    assert identity.full_name == "John Doe"
    assert identity.identifier == "john_doe"


def test_derive_identity_from_grouped_student_key():
    identity = derive_identity("Mary-Ann Lee_77")

    assert identity.full_name == "Mary Ann Lee"
    assert identity.identifier == "77"
    assert identity.last_name == "Lee"
