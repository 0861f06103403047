from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models import RSVP, CheckIn
from app.models.rsvp import RSVPStatus
from app.models.user import UserRole
from app.services.attendance_stats import attendance_rate, stats_for


@pytest.mark.parametrize(
    "attended, total, expected",
    [(0, 0, 0), (5, 0, 0), (6, 10, 60), (1, 8, 13), (1, 3, 33), (2, 3, 67), (3, 2, 150)],
)
def test_attendance_rate_rounds_half_up(attended, total, expected):
    assert attendance_rate(attended, total) == expected


def test_stats_count_going_rsvps_and_check_ins(db_session, make_user, make_event):
    organizer = make_user("org@campus.edu", role=UserRole.ORGANIZER)
    event = make_event(organizer)
    now = datetime.now(timezone.utc)

    students = [make_user(f"s{i}@campus.edu") for i in range(12)]
    for student in students[:10]:
        db_session.add(RSVP(user_id=student.id, event_id=event.id, status=RSVPStatus.GOING))
    db_session.add(RSVP(user_id=students[10].id, event_id=event.id, status=RSVPStatus.MAYBE))
    db_session.add(RSVP(user_id=students[11].id, event_id=event.id, status=RSVPStatus.NOT_GOING))
    for student in students[:6]:
        db_session.add(CheckIn(user_id=student.id, event_id=event.id, check_in_time=now))
    db_session.commit()

    stats = stats_for(db_session, event.id)

    assert stats.total_rsvps == 10
    assert stats.attended == 6
    assert stats.attendance_rate == 60


def test_check_in_without_synced_rsvp_still_counts(db_session, make_user, make_event):
    organizer = make_user("org@campus.edu", role=UserRole.ORGANIZER)
    event = make_event(organizer)
    student = make_user("late@campus.edu")
    db_session.add(RSVP(user_id=student.id, event_id=event.id, attended=False))
    db_session.add(
        CheckIn(user_id=student.id, event_id=event.id, check_in_time=datetime.now(timezone.utc))
    )
    db_session.commit()

    stats = stats_for(db_session, event.id)

    assert (stats.total_rsvps, stats.attended, stats.attendance_rate) == (1, 1, 100)


def test_stats_for_event_with_no_activity(db_session, make_user, make_event):
    event = make_event(make_user("org@campus.edu", role=UserRole.ORGANIZER))
    stats = stats_for(db_session, event.id)
    assert (stats.total_rsvps, stats.attended, stats.attendance_rate) == (0, 0, 0)
