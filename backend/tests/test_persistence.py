"""Tests for workflow state repositories."""

import asyncio

import fakeredis
import pytest
from fakeredis import aioredis

from moodle_grader.core.config import settings
from moodle_grader.models import AssignmentConfig, RosterRow, MoodleGradebookData, WorkflowState
from moodle_grader.services.persistence import (
    MemoryStateRepository, RedisStateRepository, StateRepositoryFactory
)
from moodle_grader.services.persistence.state_repository import normalize_step


def sample_state(session_id="session-1"):
    return WorkflowState(
        session_id=session_id,
        current_step=3,
        highest_step=3,
        assignment=AssignmentConfig(assignment_name="Essay 1"),
        gradebook=MoodleGradebookData(
            headers=["Full name", "Grade"],
            grades=[RosterRow(identifier="id1", full_name="Jane Smith", grade=85.0)],
            full_name_column="Full name",
            assignment_column="Grade",
        ),
    )


@pytest.fixture(params=["memory", "redis"])
def repository(request):
    if request.param == "memory":
        return MemoryStateRepository()
    return RedisStateRepository(client=aioredis.FakeRedis(decode_responses=True), ttl=60)


def test_state_round_trip(repository):
    async def run():
        assert await repository.save_state(sample_state())
        return await repository.load_state("session-1")

    state = asyncio.run(run())

    assert state == sample_state()


def test_missing_state(repository):
    async def run():
        return await repository.load_state("nobody"), await repository.get_state("nobody")

    loaded, fresh = asyncio.run(run())

    assert loaded is None
    assert fresh == WorkflowState(session_id="nobody")


def test_delete_state(repository):
    async def run():
        await repository.save_state(sample_state())
        deleted = await repository.delete_state("session-1")
        return deleted, await repository.load_state("session-1"), await repository.delete_state("session-1")

    assert asyncio.run(run()) == (True, None, False)


def test_out_of_range_steps_are_normalized(repository):
    async def run():
        await repository.save_state(WorkflowState(session_id="s", current_step=9, highest_step=0))
        return await repository.load_state("s")

    state = asyncio.run(run())

    assert state.current_step == 1
    assert state.highest_step == 1


@pytest.mark.parametrize("step, expected", [(1, 1), (4, 4), (0, 1), (5, 1), (-3, 1)])
def test_normalize_step(step, expected):
    assert normalize_step(step) == expected


def test_corrupt_memory_state_is_discarded():
    repository = MemoryStateRepository()
    repository._states["s"] = "{not json"

    assert asyncio.run(repository.load_state("s")) is None


def test_redis_state_uses_prefixed_key_with_ttl():
    client = aioredis.FakeRedis(decode_responses=True)
    repository = RedisStateRepository(client=client, key_prefix="test:", ttl=120)

    async def run():
        await repository.save_state(sample_state())
        return await client.ttl("test:state:session-1")

    assert 0 < asyncio.run(run()) <= 120


def test_unreachable_redis_is_best_effort():
    server = fakeredis.FakeServer()
    server.connected = False
    repository = RedisStateRepository(client=aioredis.FakeRedis(server=server, decode_responses=True))

    async def run():
        return (
            await repository.save_state(sample_state()),
            await repository.load_state("session-1"),
            await repository.delete_state("session-1"),
        )

    assert asyncio.run(run()) == (False, None, False)


def test_factory_selects_backend(monkeypatch):
    monkeypatch.setattr(settings, "state_backend", None)
    monkeypatch.setattr(settings, "redis_url", None)
    assert isinstance(StateRepositoryFactory.create_repository(), MemoryStateRepository)

    monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")
    assert isinstance(StateRepositoryFactory.create_repository(), RedisStateRepository)

    assert isinstance(StateRepositoryFactory.create_repository("memory"), MemoryStateRepository)
    with pytest.raises(ValueError):
        StateRepositoryFactory.create_repository("sqlite")
