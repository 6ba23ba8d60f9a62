"""Reservation availability rules.

Reservations occupy the half-open interval ``[arrival_time, departure_time)``.
Two reservations of the same property conflict when
``a.arrival < b.departure and b.arrival < a.departure``, so a stay may start
on the very instant the previous one ends.

Callers run ``lock_property`` and ``ensure_available`` in the same
transaction as the insert or update they guard.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

import models_sqlalchemy as models
from errors import BookingConflict, InvalidReference, RangeInvalid

logger = logging.getLogger(__name__)


def ensure_valid_range(arrival: datetime, departure: datetime) -> None:
    if departure <= arrival:
        raise RangeInvalid()


def lock_property(db: Session, property_id: int) -> models.Property:
    """Load the property row ``FOR UPDATE`` so bookings of it serialize.

    SQLite ignores the lock clause; there the check-then-write stays racy.
    """
    prop = db.execute(
        select(models.Property).where(models.Property.id == property_id).with_for_update()
    ).scalar_one_or_none()
    if prop is None:
        raise InvalidReference("Property does not exist.")
    return prop


def find_conflicts(
    db: Session,
    property_id: int,
    arrival: datetime,
    departure: datetime,
    exclude_id: Optional[int] = None,
) -> List[models.Reservation]:
    query = select(models.Reservation).where(
        models.Reservation.property_id == property_id,
        models.Reservation.arrival_time < departure,
        models.Reservation.departure_time > arrival,
    )
    if exclude_id is not None:
        query = query.where(models.Reservation.id != exclude_id)
    return list(db.execute(query).scalars())


def ensure_available(
    db: Session,
    property_id: int,
    arrival: datetime,
    departure: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    """Raise ``BookingConflict`` if the stay overlaps another reservation.

    The range itself is checked by the caller with ``ensure_valid_range``.
    """
    conflicts = find_conflicts(db, property_id, arrival, departure, exclude_id)
    if conflicts:
        logger.warning(
            "Booking conflict on property %s for %s..%s with reservation(s) %s",
            property_id,
            arrival.isoformat(),
            departure.isoformat(),
            [r.id for r in conflicts],
        )
        raise BookingConflict()
