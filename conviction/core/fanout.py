"""
Structured fan-out / join for concurrent provider lookups.

settle_all runs every awaitable concurrently, waits until all of them have
settled, and wraps each outcome in a Settled record. One lookup failing or
timing out never fails its siblings; call sites filter on ``ok``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one fanned-out task."""
    label: str
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: Any) -> Any:
        return self.value if self.ok else default


async def _settle_one(label: str, awaitable: Awaitable[T], timeout: Optional[float]) -> Settled[T]:
    try:
        if timeout is not None:
            value = await asyncio.wait_for(awaitable, timeout=timeout)
        else:
            value = await awaitable
        return Settled(label=label, value=value)
    except asyncio.CancelledError:
        raise
    except asyncio.TimeoutError as e:
        logger.warning(f"Fan-out task '{label}' timed out after {timeout}s")
        return Settled(label=label, error=e)
    except Exception as e:
        logger.warning(f"Fan-out task '{label}' failed: {type(e).__name__}: {e}")
        return Settled(label=label, error=e)


async def settle_all(
    awaitables: Sequence[Awaitable[T]],
    labels: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
) -> List[Settled[T]]:
    """
    Run awaitables concurrently and return one Settled per input, in order.

    Args:
        awaitables: Coroutines or futures to run
        labels: Optional names used in logs and on the Settled records
        timeout: Optional per-task timeout in seconds (expiry counts as failure)

    Returns:
        List of Settled results aligned with the input order
    """
    if labels is None:
        labels = [f"task-{i}" for i in range(len(awaitables))]
    if len(labels) != len(awaitables):
        raise ValueError("labels must align with awaitables")
    if not awaitables:
        return []

    return list(await asyncio.gather(
        *(_settle_one(label, aw, timeout) for label, aw in zip(labels, awaitables))
    ))


def successful(results: Sequence[Settled[T]]) -> List[T]:
    """Values of the tasks that succeeded, in order."""
    return [r.value for r in results if r.ok]
