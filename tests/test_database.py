import pytest
from pymongo.errors import DuplicateKeyError

from app.services import database
from app.services.database import run_in_transaction


async def test_duplicate_key_reruns_the_whole_operation():
    sessions = []

    async def callback(session):
        sessions.append(session)
        if len(sessions) == 1:
            raise DuplicateKeyError("E11000 duplicate key")
        return "done"

    assert await run_in_transaction(callback) == "done"
    assert sessions == [None, None]


async def test_duplicate_key_surfaces_once_attempts_run_out(monkeypatch):
    monkeypatch.setattr(database, "TRANSACTION_ATTEMPTS", 2)
    calls = []

    async def callback(session):
        calls.append(session)
        raise DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(DuplicateKeyError):
        await run_in_transaction(callback)
    assert len(calls) == 2


async def test_other_errors_are_not_retried():
    calls = []

    async def callback(session):
        calls.append(session)
        raise ValueError("Trip not found")

    with pytest.raises(ValueError):
        await run_in_transaction(callback)
    assert len(calls) == 1
