from datetime import datetime

import pytest

import models_sqlalchemy as models
from booking import ensure_available, ensure_valid_range, find_conflicts, lock_property
from errors import BookingConflict, InvalidReference, RangeInvalid

def day(n):
    return datetime(2025, 1, n)

@pytest.fixture
def stay(db_session):
    """A user, a property and one reservation covering Jan 5 to Jan 10."""
    user = models.User(email="guest@example.com", password="x", first_name="G", last_name="H", phone_number="1")
    prop = models.Property(name="Cabin", address="1 Road", city="Oslo", price=80.0, capacity=2)
    db_session.add_all([user, prop])
    db_session.flush()
    reservation = models.Reservation(user_id=user.id, property_id=prop.id, arrival_time=day(5), departure_time=day(10))
    db_session.add(reservation)
    db_session.flush()
    return reservation

@pytest.mark.parametrize("arrival, departure", [(day(3), day(6)), (day(8), day(12)), (day(6), day(7)), (day(1), day(20)), (day(5), day(10))])
def test_overlaps_conflict(db_session, stay, arrival, departure):
    assert [r.id for r in find_conflicts(db_session, stay.property_id, arrival, departure)] == [stay.id]
    with pytest.raises(BookingConflict):
        ensure_available(db_session, stay.property_id, arrival, departure)

@pytest.mark.parametrize("arrival, departure", [(day(1), day(5)), (day(10), day(15)), (day(1), day(2))])
def test_touching_or_disjoint_ranges_are_free(db_session, stay, arrival, departure):
    assert find_conflicts(db_session, stay.property_id, arrival, departure) == []
    ensure_available(db_session, stay.property_id, arrival, departure)

def test_other_property_never_conflicts(db_session, stay):
    assert find_conflicts(db_session, stay.property_id + 1, day(5), day(10)) == []

def test_reservation_excluded_from_its_own_check(db_session, stay):
    ensure_available(db_session, stay.property_id, day(7), day(12), exclude_id=stay.id)

@pytest.mark.parametrize("arrival, departure", [(day(5), day(5)), (day(6), day(5))])
def test_range_must_be_positive(arrival, departure):
    with pytest.raises(RangeInvalid):
        ensure_valid_range(arrival, departure)

def test_lock_property(db_session, stay):
    assert lock_property(db_session, stay.property_id).id == stay.property_id
    with pytest.raises(InvalidReference):
        lock_property(db_session, 999)
