"""
Business day lifecycle tests: open, float override, close, invoice preview.
"""

import pytest

from garagepos.models import BusinessSession, JournalEntry
from garagepos.services import day_service
from garagepos.services.day_service import NoActiveSession, SessionConflict
from garagepos.validation import ValidationError


class TestStartDay:
    def test_start_day_opens_session(self, staff_user):
        session = day_service.start_day(staff_user.id, 500000)

        assert session.status == "open"
        assert session.float_cash_cents == 500000
        assert session.invoice_counter == 0
        assert day_service.get_active_session(staff_user.id).id == session.id
        assert day_service.next_invoice_number(session) == 1

    def test_second_open_day_for_same_user_conflicts(self, staff_user, open_day):
        first = open_day(staff_user, 1000)

        with pytest.raises(SessionConflict) as exc:
            day_service.start_day(staff_user.id, 2000)

        assert exc.value.status_code == 409
        assert exc.value.details["session_id"] == first.id

    def test_two_users_can_trade_at_once(self, staff_user, make_user, open_day):
        other = make_user("nimal")
        open_day(staff_user)
        open_day(other)

        assert len(day_service.list_sessions(status="open")) == 2

    def test_negative_float_rejected(self, staff_user):
        with pytest.raises(ValidationError):
            day_service.start_day(staff_user.id, -1)
        assert day_service.get_active_session(staff_user.id) is None

    def test_missing_float_defaults_to_zero(self, staff_user):
        assert day_service.start_day(staff_user.id, None).float_cash_cents == 0

    def test_day_start_is_journaled(self, db_session, staff_user):
        day_service.start_day(staff_user.id, 250000)

        entry = db_session.query(JournalEntry).one()
        assert entry.kind == "day_start"
        assert "DAY STARTED" in entry.content
        assert "Rs 2,500.00" in entry.content


class TestCloseDay:
    def test_close_day_is_terminal(self, staff_user, open_day):
        session = open_day(staff_user, 1000)

        closed = day_service.close_day(session.id, 4000)
        assert closed.status == "closed"
        assert closed.cash_in_hand_cents == 4000
        assert closed.end_time is not None

        with pytest.raises(NoActiveSession):
            day_service.close_day(session.id, 9999)

        again = day_service.get_session(session.id)
        assert again.cash_in_hand_cents == 4000

    def test_new_day_after_close(self, staff_user, open_day):
        first = open_day(staff_user)
        day_service.close_day(first.id, 0)

        second = day_service.start_day(staff_user.id, 0)
        assert second.id != first.id
        assert second.invoice_counter == 0

    def test_require_open_session(self, staff_user, open_day):
        session = open_day(staff_user)
        assert day_service.require_open_session(session.id).id == session.id

        day_service.close_day(session.id, 0)
        with pytest.raises(NoActiveSession):
            day_service.require_open_session(session.id)


class TestAdjustFloat:
    def test_adjust_float_on_open_day(self, staff_user, open_day):
        session = open_day(staff_user, 1000)
        assert day_service.adjust_float(session.id, 7500).float_cash_cents == 7500

    def test_adjust_float_on_closed_day_rejected(self, db_session, staff_user, open_day):
        session = open_day(staff_user, 1000)
        day_service.close_day(session.id, 1000)

        with pytest.raises(NoActiveSession):
            day_service.adjust_float(session.id, 5)
        assert db_session.get(BusinessSession, session.id).float_cash_cents == 1000
