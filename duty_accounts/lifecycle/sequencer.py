"""
Commit Sequencer

The backend has no transactions. A save is a short list of writes
executed strictly in order, each with its own failure policy:

    IGNORE - best-effort; the failure is recorded and the next step runs
    ABORT  - mandatory; the failure stops the sequence and raises
             PersistenceFailure with the backend's message

Steps are never issued concurrently.
"""

from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from duty_accounts.errors import DirectoryEnrichmentFailure, PersistenceFailure
from duty_accounts.models.snapshot import WriteResult


logger = structlog.get_logger(__name__)


class FailurePolicy(str, Enum):
    IGNORE = "ignore"
    ABORT = "abort"


class CommitStep(BaseModel):
    """One backend write."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    operation: Callable[[], Awaitable[WriteResult]]
    on_failure: FailurePolicy
    entity_type: str = ""
    entity_id: str = ""


class StepResult(BaseModel):
    name: str
    entity_type: str = ""
    entity_id: str = ""
    on_failure: FailurePolicy
    success: bool
    message: Optional[str] = None


class CommitReport(BaseModel):
    """What happened to each step that ran."""

    results: list[StepResult] = []

    @property
    def succeeded(self) -> list[StepResult]:
        return [r for r in self.results if r.success]

    @property
    def ignored_failures(self) -> list[StepResult]:
        return [
            r for r in self.results
            if not r.success and r.on_failure is FailurePolicy.IGNORE
        ]

    @property
    def enrichment_failures(self) -> list[DirectoryEnrichmentFailure]:
        return [
            DirectoryEnrichmentFailure(r.name, r.entity_id, r.message)
            for r in self.ignored_failures
        ]


class CommitSequencer:
    """Runs CommitSteps in order."""

    async def run(self, steps: list[CommitStep]) -> CommitReport:
        """
        Execute the steps.

        Raises:
            PersistenceFailure: An ABORT step failed. Later steps do not run.
        """
        report = CommitReport()

        for step in steps:
            try:
                result = await step.operation()
            except Exception as e:
                # Backends report rejections through WriteResult; an
                # exception means the backend was unreachable.
                logger.warning("commit_step_raised", step=step.name, error=str(e))
                result = WriteResult.failed(str(e))

            report.results.append(StepResult(
                name=step.name,
                entity_type=step.entity_type,
                entity_id=step.entity_id,
                on_failure=step.on_failure,
                success=result.success,
                message=result.message,
            ))

            if result.success:
                continue

            if step.on_failure is FailurePolicy.ABORT:
                logger.error(
                    "commit_aborted",
                    step=step.name,
                    entity_id=step.entity_id,
                    error=result.message,
                )
                raise PersistenceFailure(step.name, result.message)

            logger.warning(
                "commit_step_ignored",
                step=step.name,
                entity_id=step.entity_id,
                error=result.message,
            )

        return report
