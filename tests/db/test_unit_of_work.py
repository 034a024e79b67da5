"""Commit-or-rollback behavior of UnitOfWork."""

import pytest
from sqlalchemy import func, select

from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.models.location import Location, LocationType


def _location(code: str) -> Location:
    return Location(code=code, name=code.title(), type=LocationType.STORE.value)


def _count(session) -> int:
    return session.execute(select(func.count()).select_from(Location)).scalar_one()


class TestAtomic:
    def test_commits_on_success(self, session, session_factory):
        with UnitOfWork(session).atomic():
            session.add(_location("BAR"))

        other = session_factory()
        try:
            assert _count(other) == 1
        finally:
            other.close()

    def test_rolls_back_and_reraises(self, session, captured_logs):
        with pytest.raises(RuntimeError, match="boom"):
            with UnitOfWork(session).atomic():
                session.add(_location("BAR"))
                session.flush()
                raise RuntimeError("boom")

        assert _count(session) == 0
        assert any(r["message"] == "unit_of_work_rolled_back" for r in captured_logs())

    def test_non_owning_unit_only_flushes(self, session):
        uow = UnitOfWork(session, auto_commit=False)
        assert uow.owns_transaction is False

        with uow.atomic():
            session.add(_location("BAR"))

        assert session.in_transaction()
        session.rollback()
        assert _count(session) == 0


class TestRunAtomically:
    def test_returns_result(self, session):
        code = UnitOfWork(session).run_atomically(
            lambda s: (s.add(_location("DRY")), "DRY")[1]
        )
        assert code == "DRY"
        assert _count(session) == 1

    def test_propagates_failure(self, session):
        def _fail(s):
            s.add(_location("DRY"))
            s.flush()
            raise ValueError("nope")

        with pytest.raises(ValueError):
            UnitOfWork(session).run_atomically(_fail)
        assert _count(session) == 0
