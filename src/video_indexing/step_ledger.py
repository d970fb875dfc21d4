"""Step ledger: durable record of completed job steps and their results."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

from postgrest.exceptions import APIError
from pydantic import BaseModel, Field
from supabase import Client

from src.utils.logging import get_logger

from .exceptions import VideoIndexingError

logger = get_logger(__name__)


class StepRecord(BaseModel):
    """A step that completed successfully, with its JSON-serialised result."""

    job_id: str
    step_name: str
    result: Any = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StepLedger(Protocol):
    async def get(self, job_id: str, step_name: str) -> StepRecord | None: ...

    async def record(self, job_id: str, step_name: str, result: Any) -> StepRecord: ...

    async def completed_steps(self, job_id: str) -> list[str]: ...


class InMemoryStepLedger:
    """Process-local ledger; survives retries but not restarts."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], StepRecord] = {}

    async def get(self, job_id: str, step_name: str) -> StepRecord | None:
        return self._records.get((job_id, step_name))

    async def record(self, job_id: str, step_name: str, result: Any) -> StepRecord:
        record = StepRecord(job_id=job_id, step_name=step_name, result=result)
        self._records[(job_id, step_name)] = record
        return record

    async def completed_steps(self, job_id: str) -> list[str]:
        records = [r for (jid, _), r in self._records.items() if jid == job_id]
        return [r.step_name for r in sorted(records, key=lambda r: r.completed_at)]


class SupabaseStepLedger:
    """Ledger persisted in the Supabase ``job_steps`` table.

    Rows are upserted on ``(job_id, step_name)`` so recording a step twice
    leaves a single row.
    """

    def __init__(self, client: Client):
        self.client = client

    async def get(self, job_id: str, step_name: str) -> StepRecord | None:
        try:
            response = await asyncio.to_thread(
                self.client.table("job_steps")
                .select("job_id, step_name, result, completed_at")
                .eq("job_id", job_id)
                .eq("step_name", step_name)
                .execute
            )
        except APIError as e:
            logger.exception("step_lookup_failed", job_id=job_id, step_name=step_name)
            raise VideoIndexingError(f"Failed to read step ledger: {e.message}") from e

        if not response.data:
            return None
        return StepRecord.model_validate(response.data[0])

    async def record(self, job_id: str, step_name: str, result: Any) -> StepRecord:
        record = StepRecord(job_id=job_id, step_name=step_name, result=result)
        try:
            await asyncio.to_thread(
                self.client.table("job_steps")
                .upsert(record.model_dump(mode="json"), on_conflict="job_id,step_name")
                .execute
            )
        except APIError as e:
            logger.exception("step_record_failed", job_id=job_id, step_name=step_name)
            raise VideoIndexingError(f"Failed to write step ledger: {e.message}") from e
        return record

    async def completed_steps(self, job_id: str) -> list[str]:
        try:
            response = await asyncio.to_thread(
                self.client.table("job_steps")
                .select("step_name")
                .eq("job_id", job_id)
                .order("completed_at")
                .execute
            )
        except APIError as e:
            raise VideoIndexingError(f"Failed to read step ledger: {e.message}") from e
        return [row["step_name"] for row in response.data or []]
