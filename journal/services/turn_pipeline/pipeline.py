"""
Pipeline orchestrator for turn processing.

TurnPipeline executes stages sequentially with timing and error logging.
"""

import time
from typing import List

import structlog

from .base import TurnStage
from .context import PipelineContext
from .result import TurnResult

log = structlog.get_logger(__name__)


class TurnPipeline:
    """
    Orchestrates execution of pipeline stages.

    Executes stages sequentially, tracking timing and logging failures.
    A failing stage stops the turn; its exception propagates to the caller.
    """

    def __init__(self, stages: List[TurnStage]):
        """
        Initialize pipeline with a list of stages.

        Args:
            stages: Ordered list of TurnStage instances
        """
        self.stages = stages
        self.logger = log

    async def execute(self, context: PipelineContext) -> TurnResult:
        """
        Execute all stages sequentially.

        Args:
            context: Initial turn context with session_id, date and user_input

        Returns:
            TurnResult with the persisted state, extraction and next move

        Raises:
            Exception: If any stage fails
        """
        start_time = time.perf_counter()

        self.logger.info(
            "pipeline_started",
            session_id=context.session_id,
            date=context.date,
            num_stages=len(self.stages),
        )

        for stage in self.stages:
            stage_start = time.perf_counter()

            try:
                self.logger.debug("stage_started", stage_name=stage.stage_name)

                context = await stage.process(context)

                stage_elapsed = (time.perf_counter() - stage_start) * 1000
                context.stage_timings[stage.stage_name] = stage_elapsed

                self.logger.debug(
                    "stage_completed",
                    stage_name=stage.stage_name,
                    duration_ms=stage_elapsed,
                )

            except Exception as e:
                self.logger.error(
                    "stage_failed",
                    stage_name=stage.stage_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        self.logger.info(
            "pipeline_completed",
            session_id=context.session_id,
            latency_ms=latency_ms,
            stage_timings=context.stage_timings,
        )

        return self._build_result(context, latency_ms)

    def _build_result(self, context: PipelineContext, latency_ms: int) -> TurnResult:
        if context.next_move is None:
            raise RuntimeError("pipeline finished without a next move")

        return TurnResult(
            state=context.require_state(),
            extraction=context.require_extraction(),
            next_move=context.next_move,
            reply=context.reply,
            reply_source=context.reply_source,
            memory_enriched=context.memory_enriched,
            updated_fields=sorted(context.updates),
            latency_ms=latency_ms,
            stage_timings=context.stage_timings,
        )
