import pytest

from reviewflow.errors import ConflictError, ValidationError
from reviewflow.utils.retry import compute_backoff, retry_on_conflict


def test_compute_backoff_grows():
    assert 0.05 <= compute_backoff(0) <= 0.1
    assert 0.2 <= compute_backoff(2) <= 0.25


@pytest.mark.asyncio
async def test_retry_on_conflict_retries_once():
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) == 1:
            raise ConflictError("lost race", item_id="i1")
        return "ok"

    assert await retry_on_conflict(operation, retries=1) == "ok"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retry_on_conflict_gives_up():
    async def operation():
        raise ConflictError("lost race")

    with pytest.raises(ConflictError) as exc:
        await retry_on_conflict(operation, retries=1)
    assert exc.value.retryable


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    calls = []

    async def operation():
        calls.append(1)
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        await retry_on_conflict(operation, retries=3)
    assert len(calls) == 1
