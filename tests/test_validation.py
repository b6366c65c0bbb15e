import pytest
from fastapi import HTTPException


def test_validate_string_field():
    from portal.app.utils.validation import validate_string_field

    assert validate_string_field("  Clerk  ", "Title") == "Clerk"
    assert validate_string_field("   ", "Notes", required=False) is None
    assert validate_string_field(None, "Notes", required=False) is None
    for bad in (None, "", "x" * 11):
        with pytest.raises(HTTPException) as exc:
            validate_string_field(bad, "Title", max_length=10)
        assert exc.value.status_code == 400


def test_validate_integer_field():
    from portal.app.utils.validation import validate_integer_field

    assert validate_integer_field("7", "Capacity", min_value=1) == 7
    with pytest.raises(HTTPException):
        validate_integer_field("abc", "Capacity")
    with pytest.raises(HTTPException):
        validate_integer_field(0, "Capacity", min_value=1)


def test_status_validators():
    from portal.app.utils.validation import validate_job_status, validate_program_status

    assert validate_job_status(None) == "active"
    assert validate_job_status(" Hidden ") == "hidden"
    assert validate_program_status(None) == "upcoming"
    with pytest.raises(HTTPException):
        validate_job_status("draft")
    with pytest.raises(HTTPException):
        validate_program_status("paused")


def test_parse_datetime():
    from portal.app.utils.validation import parse_datetime

    dt = parse_datetime("2030-05-01T10:00:00Z")
    assert dt.tzinfo is not None and dt.hour == 10
    with pytest.raises(ValueError):
        parse_datetime("")
    with pytest.raises(ValueError):
        parse_datetime("tomorrow")
    with pytest.raises(ValueError):
        parse_datetime("2030-05-01T10:00:00", "Mars/Olympus_Mons")


def test_string_list_helpers():
    from portal.app.utils.json_fields import clean_string_list, dump_string_list

    assert clean_string_list('["a", " ", "b "]') == ["a", "b"]
    assert clean_string_list("not json") == []
    assert clean_string_list(None) == []
    assert dump_string_list([]) is None
    assert dump_string_list([" x "]) == '["x"]'


def test_list_options():
    from portal.app.schemas.applications import ListOptions

    opts = ListOptions(status=" Pending ", sort_by="MATCH_SCORE")
    assert opts.status == "pending"
    assert opts.sort_by == "match_score"
    with pytest.raises(ValueError):
        ListOptions(sort_by="salary")
    with pytest.raises(ValueError):
        ListOptions(limit=0)
