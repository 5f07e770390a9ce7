"""
Sync Queue.

Ordered, append-only buffer of operations awaiting the remote replica.

The queue never collapses or reorders. ``drain`` works through the batch
present when it starts, head first, and stops at the first failure: the
failed operation and everything behind it stay queued, in order, for the
next attempt. Operations enqueued while a drain is running wait for the
next drain.

The queue is only as durable as the snapshot that carries it. Operations
enqueued after the last successful save may be lost on restart.
"""

from collections.abc import Awaitable, Callable, Iterable

from memos.core.logging import get_logger
from memos.schemas.sync import DrainResult, SyncOperation

logger = get_logger(__name__)

ApplyFn = Callable[[SyncOperation], Awaitable[bool]]


class SyncQueue:
    def __init__(self, operations: Iterable[SyncOperation] = ()) -> None:
        self._ops: list[SyncOperation] = list(operations)
        self._in_flight: SyncOperation | None = None

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    @property
    def in_flight(self) -> SyncOperation | None:
        """The operation currently being applied, if any."""
        return self._in_flight

    def pending(self) -> list[SyncOperation]:
        return list(self._ops)

    def enqueue(self, op: SyncOperation) -> None:
        self._ops.append(op)
        logger.debug(
            "Operation enqueued",
            source="sync",
            extra={"op_id": op.id, "type": op.type.value, "depth": len(self._ops)},
        )

    def restore(self, operations: Iterable[SyncOperation]) -> None:
        """Replace the queue contents, e.g. from a loaded snapshot."""
        self._ops = list(operations)

    def discard(self, predicate: Callable[[SyncOperation], bool]) -> list[SyncOperation]:
        """
        Remove queued operations matching ``predicate``.

        The operation currently being applied is never removed.

        Returns:
            The removed operations
        """
        removed = [op for op in self._ops if op is not self._in_flight and predicate(op)]
        if removed:
            dropped = {id(op) for op in removed}
            self._ops = [op for op in self._ops if id(op) not in dropped]
        return removed

    async def drain(self, apply_fn: ApplyFn) -> DrainResult:
        """
        Apply queued operations in FIFO order.

        Args:
            apply_fn: Async callable returning True once the remote has
                applied the operation. False or an exception counts as failure.

        Returns:
            DrainResult listing applied operations, and the failed one with
            its error if draining stopped early
        """
        result = DrainResult()
        batch = list(self._ops)

        for op in batch:
            if not any(queued is op for queued in self._ops):
                # Discarded while an earlier operation was in flight.
                continue

            self._in_flight = op
            try:
                ok = await apply_fn(op)
            except Exception as e:
                result.failed = op
                result.error = e
                break
            finally:
                self._in_flight = None

            if not ok:
                result.failed = op
                break

            self._ops = [queued for queued in self._ops if queued is not op]
            result.applied.append(op)

        if result.failed is not None:
            logger.warning(
                "Drain stopped at failing operation",
                source="sync",
                extra={
                    "op_id": result.failed.id,
                    "type": result.failed.type.value,
                    "applied": len(result.applied),
                    "remaining": len(self._ops),
                    "error": str(result.error) if result.error else None,
                },
            )
        return result
