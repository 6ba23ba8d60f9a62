from datetime import datetime

import pytest

from validators import (
    MAX_INTEGER,
    PROPERTY_RULES,
    RESERVATION_RULES,
    USER_RULES,
    USER_UPDATE_RULES,
    is_email,
    iso8601,
    optional,
    parse_timestamp,
    positive_float,
    positive_int,
    run_rules,
)

def messages_for(errors, field):
    return [e["msg"] for e in errors if e["field"] == field]

def test_valid_signup_passes():
    payload = {
        "email": "alice@example.com",
        "password": "LongEnough1!",
        "firstName": "Alice",
        "lastName": "Smith",
        "phoneNumber": "555-0100",
    }
    assert run_rules(USER_RULES, payload) == []

def test_every_password_rule_reports():
    errors = run_rules(USER_RULES, {"password": "1234"})
    assert messages_for(errors, "password") == [
        "Password must be at least 10 characters long",
        "Password must contain at least one uppercase letter",
        "Password must contain at least one lowercase letter",
        "Password must contain at least one special character",
    ]

def test_short_password_cites_length():
    errors = run_rules(USER_RULES, {"password": "short1!"})
    assert "Password must be at least 10 characters long" in messages_for(errors, "password")

def test_missing_fields_all_reported():
    errors = run_rules(USER_RULES, {})
    assert {e["field"] for e in errors} == {"email", "password", "firstName", "lastName", "phoneNumber"}

def test_password_optional_on_update():
    payload = {"firstName": "A", "lastName": "B", "phoneNumber": "1"}
    assert run_rules(USER_UPDATE_RULES, payload) == []
    payload["password"] = "weak"
    assert messages_for(run_rules(USER_UPDATE_RULES, payload), "password")

def test_optional_skips_absent_values():
    rule, = optional(positive_int("bad"))
    assert rule(None) is None
    assert rule(0) == "bad"

@pytest.mark.parametrize("value", ["alice@example.com", "a.b+c@sub.example.org"])
def test_is_email_accepts(value):
    assert is_email("bad")(value) is None

@pytest.mark.parametrize("value", ["", "alice", "alice@example", "a b@example.com", None, 42])
def test_is_email_rejects(value):
    assert is_email("bad")(value) == "bad"

@pytest.mark.parametrize("value", [1, 0.5, "12.75", 1e6])
def test_positive_float_accepts(value):
    assert positive_float("bad")(value) is None

@pytest.mark.parametrize("value", [0, -1, "abc", None, True, float("nan"), float("inf")])
def test_positive_float_rejects(value):
    assert positive_float("bad")(value) == "bad"

@pytest.mark.parametrize("value", [1, 4, "6", 8.0, MAX_INTEGER, str(MAX_INTEGER)])
def test_positive_int_accepts(value):
    assert positive_int("bad")(value) is None

@pytest.mark.parametrize("value", [0, -3, 2.5, "2.5", "four", None, False, 2**63, "100000000000000000000", 1e20])
def test_positive_int_rejects(value):
    assert positive_int("bad")(value) == "bad"

def test_property_rules_collect_in_field_order():
    errors = run_rules(PROPERTY_RULES, {"name": "Cabin", "price": 0, "capacity": 0})
    assert [e["field"] for e in errors] == ["address", "city", "price", "capacity"]

def test_reservation_rules():
    ok = {"propertyId": 1, "arrivalTime": "2025-01-01", "departureTime": "2025-01-05T10:00:00Z"}
    assert run_rules(RESERVATION_RULES, ok) == []
    bad = {"propertyId": "x", "arrivalTime": "01/02/2025"}
    assert [e["field"] for e in run_rules(RESERVATION_RULES, bad)] == ["propertyId", "arrivalTime", "departureTime"]

@pytest.mark.parametrize("value", ["2025-01-01", "2025-01-01T10:30:00", "2025-01-01T10:30:00+01:00", "2025-01-01T10:30:00Z"])
def test_iso8601_accepts(value):
    assert iso8601("bad")(value) is None

@pytest.mark.parametrize("value", ["", "tomorrow", "2025-02-30", 20250101, None, "9999-12-31T20:00:00-05:00"])
def test_iso8601_rejects(value):
    assert iso8601("bad")(value) == "bad"

def test_parse_timestamp_normalises_to_naive_utc():
    assert parse_timestamp("2025-01-01T12:00:00+02:00") == datetime(2025, 1, 1, 10, 0)
    assert parse_timestamp("2025-01-01T12:00:00Z") == datetime(2025, 1, 1, 12, 0)
    assert parse_timestamp("2025-01-01") == datetime(2025, 1, 1)
    assert parse_timestamp("2025-01-01").tzinfo is None

def test_parse_timestamp_out_of_range_is_value_error():
    with pytest.raises(ValueError):
        parse_timestamp("9999-12-31T20:00:00-05:00")
    with pytest.raises(ValueError):
        parse_timestamp("0001-01-01T01:00:00+05:00")

def test_bad_email_reports_both_messages():
    errors = run_rules(USER_RULES, {"email": "alice@example"})
    assert messages_for(errors, "email") == ["Must be a valid email", "Must be a valid email format"]
