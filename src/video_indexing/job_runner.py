"""Durable, step-wise job execution.

A job is a sequence of named steps. Each completed step's result is written to
a ``StepLedger``; when the job is invoked again with the same id (after a crash
or a retried event delivery) completed steps return their recorded result
instead of re-running their side effects.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import TypeAdapter

from src.utils.logging import get_logger

from .exceptions import StepFailedError
from .step_ledger import StepLedger

logger = get_logger(__name__)

T = TypeVar("T")


def job_id_for(function_id: str, event_id: str) -> str:
    """Job id for one invocation of a function by one event."""
    return f"{function_id}:{event_id}"


class JobContext:
    """Runs the steps of a single job against the ledger."""

    def __init__(
        self,
        job_id: str,
        ledger: StepLedger,
        timeout_seconds: float,
        max_retries: int,
        retry_backoff_seconds: float,
    ):
        self.job_id = job_id
        self.ledger = ledger
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds

    async def run(
        self,
        step_name: str,
        fn: Callable[[], Awaitable[T]],
        *,
        result_type: Any = Any,
        retries: int | None = None,
        no_retry_on: tuple[type[BaseException], ...] = (),
    ) -> T:
        """Run a step once to completion, or replay its recorded result.

        Args:
            step_name: Name unique within the job.
            fn: Coroutine factory performing the step. Called once per attempt.
            result_type: Type used to serialise the result into the ledger and
                to validate it back on replay.
            retries: Retries after the first attempt; defaults to the job's budget.
            no_retry_on: Exception types that fail the step on the spot; the
                step body already retried them internally.

        Returns:
            The step result, fresh or replayed.

        Raises:
            StepFailedError: Every attempt raised or timed out, or an attempt
                raised one of ``no_retry_on``.
            ValueError: ``retries`` is negative.
        """
        adapter: TypeAdapter[Any] = TypeAdapter(result_type)

        record = await self.ledger.get(self.job_id, step_name)
        if record is not None:
            logger.info("step_replayed", job_id=self.job_id, step=step_name)
            return adapter.validate_python(record.result)

        retries = self.max_retries if retries is None else retries
        if retries < 0:
            raise ValueError(f"Step '{step_name}' retries must be >= 0, got {retries}")
        attempts = retries + 1

        attempt = 0
        while True:
            attempt += 1
            try:
                result = await asyncio.wait_for(fn(), timeout=self.timeout_seconds)
            except Exception as e:
                logger.warning(
                    "step_attempt_failed",
                    job_id=self.job_id,
                    step=step_name,
                    attempt=attempt,
                    attempts=attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                if attempt >= attempts or isinstance(e, no_retry_on):
                    logger.error(
                        "step_failed",
                        job_id=self.job_id,
                        step=step_name,
                        attempts=attempt,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    raise StepFailedError(self.job_id, step_name, attempt, e) from e
                await asyncio.sleep(self.retry_backoff_seconds * 2 ** (attempt - 1))
                continue

            await self.ledger.record(
                self.job_id, step_name, adapter.dump_python(result, mode="json")
            )
            logger.info("step_completed", job_id=self.job_id, step=step_name, attempt=attempt)
            return result


class JobRunner:
    """Creates job contexts sharing one ledger and one retry policy."""

    def __init__(
        self,
        ledger: StepLedger,
        max_retries: int = 3,
        retry_backoff_seconds: float = 1.0,
    ):
        self.ledger = ledger
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds

    def job(self, function_id: str, event_id: str, timeout_seconds: float) -> JobContext:
        return JobContext(
            job_id=job_id_for(function_id, event_id),
            ledger=self.ledger,
            timeout_seconds=timeout_seconds,
            max_retries=self.max_retries,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )
