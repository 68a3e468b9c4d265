# /src/core/farm.py
# Batch executor: runs a list of operations in the depot's own context so
# every step sees the effects of the steps before it, and a failing step
# takes the whole batch down with it.
from typing import Any, List, Sequence, Union

from src.core.errors import Revert, StepFailedError
from src.core.logger import get_logger, BATCHES_EXECUTED, BATCH_STEP_FAILURES
from src.core.operations import Operation, as_operation
from src.core.tx import CallContext

log = get_logger(__name__)

class BatchExecutor:
    def farm(self, ctx: CallContext, operations: Sequence[Union[Operation, bytes]]) -> List[Any]:
        """
        Executes `operations` in order and returns one result per operation.

        Steps may be typed operations or their encoded bytes; bytes are decoded
        lazily, so a malformed step fails at its own position. If any step
        reverts, state is restored to what it was before the batch started and
        StepFailedError carries the step's (0-based) index and reason.
        """
        results: List[Any] = []
        with ctx.tx.checkpoint():
            for index, raw in enumerate(operations):
                kind = raw.kind.value if isinstance(raw, Operation) else "encoded"
                try:
                    op = as_operation(raw)
                    kind = op.kind.value
                    results.append(self.dispatch(ctx, op))
                except Revert as e:
                    BATCH_STEP_FAILURES.labels(kind).inc()
                    log.warning("BATCH_STEP_FAILED", index=index, kind=kind, reason=e.reason, steps=len(operations))
                    raise StepFailedError.from_revert(index, e) from e

        BATCHES_EXECUTED.inc()
        log.info("BATCH_EXECUTED", caller=ctx.caller, steps=len(results))
        return results
