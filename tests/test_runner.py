import asyncio

import pytest

from auditstore.orchestrator.runner import run_all


def test_outcomes_match_submission_order_despite_failures():
    def make(i):
        async def task():
            await asyncio.sleep((10 - i) * 0.001)
            if i % 3 == 0:
                raise ValueError(f"task {i} failed")
            return i

        return task

    outcomes = asyncio.run(run_all([make(i) for i in range(10)], 4))

    assert len(outcomes) == 10
    for i, outcome in enumerate(outcomes):
        if i % 3 == 0:
            assert outcome.failed
            assert isinstance(outcome.error, ValueError)
            assert str(outcome.error) == f"task {i} failed"
        else:
            assert not outcome.failed
            assert outcome.value == i


def test_concurrency_never_exceeds_cap():
    in_flight = 0
    peak = 0
    calls = []

    def make(i):
        async def task():
            nonlocal in_flight, peak
            calls.append(i)
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return i

        return task

    outcomes = asyncio.run(run_all([make(i) for i in range(12)], 3))

    assert peak == 3
    assert sorted(calls) == list(range(12))
    assert [outcome.value for outcome in outcomes] == list(range(12))


def test_cap_larger_than_task_count():
    async def task():
        return "done"

    outcomes = asyncio.run(run_all([task, task], 20))
    assert [outcome.value for outcome in outcomes] == ["done", "done"]


def test_no_tasks():
    assert asyncio.run(run_all([], 5)) == []


def test_rejects_non_positive_cap():
    async def task():
        return 1

    with pytest.raises(ValueError):
        asyncio.run(run_all([task], 0))
