"""
Named-stage progress pipeline for introduction generation.

Stages run one after another and report synthetic progress from 0 to 100
through an on_progress(stage_name, value) callback. A stage can also carry
real async work (the LLM call); its final 100 is only reported once that
work has finished.
"""
import asyncio
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from litdraft.errors import InvalidArgument, StageFailedError

logger = logging.getLogger(__name__)

PIPELINE_TICK_SECONDS = float(os.getenv("PIPELINE_TICK_SECONDS", "0.05"))
PIPELINE_FIXED_STAGE_SECONDS = float(os.getenv("PIPELINE_FIXED_STAGE_SECONDS", "1.0"))

FIXED_DURATION_STEPS = 10
DEFAULT_VARIABLE_STEPS = 100

ProgressCallback = Callable[[str, float], None]


class StageKind(str, Enum):
    FIXED_DURATION = "fixed_duration"
    VARIABLE_SPEED = "variable_speed"


@dataclass
class PipelineStageSpec:
    """
    Definition of one stage.

    speed_factor only applies to variable-speed stages (default 1.0);
    work is an optional zero-argument coroutine function whose result is
    returned from ProgressPipeline.run under the stage name.
    """
    name: str
    kind: StageKind = StageKind.VARIABLE_SPEED
    speed_factor: Optional[float] = None
    description: str = ""
    work: Optional[Callable[[], Awaitable[Any]]] = None


@dataclass
class PipelineStage:
    """Live state of a stage during a run."""
    name: str
    is_fixed_duration: bool
    speed_factor: Optional[float] = None
    progress: float = 0.0


class ProgressPipeline:
    """
    Drives stages sequentially and reports progress.

    Handles:
    - Variable-speed stages (tick delay = tick_seconds / speed_factor)
    - Fixed-duration stages (10 steps of 10 over fixed_duration_seconds)
    - Stage work running alongside the synthetic ticks
    - Cancellation (no callbacks once cancelled)
    """

    def __init__(
        self,
        tick_seconds: float = PIPELINE_TICK_SECONDS,
        variable_steps: int = DEFAULT_VARIABLE_STEPS,
        fixed_duration_seconds: float = PIPELINE_FIXED_STAGE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if variable_steps < 1:
            raise InvalidArgument(f"variable_steps must be >= 1, got {variable_steps}")
        self.tick_seconds = tick_seconds
        self.variable_steps = variable_steps
        self.fixed_duration_seconds = fixed_duration_seconds
        self._sleep = sleep

        self.stages: List[PipelineStage] = []
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the current run. Safe to call from an on_progress callback."""
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _validate(self, specs: Sequence[PipelineStageSpec]) -> None:
        names = [spec.name for spec in specs]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise InvalidArgument(f"Stage names must be unique, duplicated: {sorted(duplicates)}")

        for spec in specs:
            if spec.kind == StageKind.VARIABLE_SPEED and spec.speed_factor is not None and spec.speed_factor <= 0:
                raise InvalidArgument(f"Stage '{spec.name}' speed_factor must be > 0, got {spec.speed_factor}")

    def schedule(self, spec: PipelineStageSpec) -> Tuple[int, float]:
        """Return (number of increments, delay before each increment) for a stage."""
        if spec.kind == StageKind.FIXED_DURATION:
            return FIXED_DURATION_STEPS, self.fixed_duration_seconds / FIXED_DURATION_STEPS

        speed_factor = spec.speed_factor if spec.speed_factor is not None else 1.0
        return self.variable_steps, self.tick_seconds / speed_factor

    async def run(self, specs: Sequence[PipelineStageSpec], on_progress: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        """
        Run every stage to 100 in order.

        Returns:
            Mapping of stage name -> result of its work (None for purely synthetic stages)

        Raises:
            StageFailedError: a stage's work raised; remaining stages are skipped
            asyncio.CancelledError: the run was cancelled
        """
        self._validate(specs)

        self._cancelled = False
        self._task = asyncio.current_task()
        self.stages = [
            PipelineStage(
                name=spec.name,
                is_fixed_duration=spec.kind == StageKind.FIXED_DURATION,
                speed_factor=None if spec.kind == StageKind.FIXED_DURATION else (spec.speed_factor or 1.0),
            )
            for spec in specs
        ]

        run_start = time.time()
        results: Dict[str, Any] = {}
        try:
            for spec, stage in zip(specs, self.stages):
                logger.debug(f"Starting stage '{spec.name}'")
                results[spec.name] = await self._run_stage(spec, stage, on_progress)
        except asyncio.CancelledError:
            self._cancelled = True
            logger.info("Pipeline cancelled")
            raise
        finally:
            self.stages = []
            self._task = None

        logger.info(f"Pipeline finished {len(specs)} stages in {(time.time() - run_start) * 1000:.0f}ms")
        return results

    async def _run_stage(self, spec: PipelineStageSpec, stage: PipelineStage, on_progress: Optional[ProgressCallback]) -> Any:
        steps, delay = self.schedule(spec)
        work_task = asyncio.ensure_future(spec.work()) if spec.work is not None else None
        result = None

        try:
            for step in range(1, steps + 1):
                await self._sleep(delay)

                if work_task is not None:
                    if work_task.done():
                        self._raise_if_failed(spec.name, work_task)
                    if step == steps:
                        result = await self._finish_work(spec.name, work_task)

                progress = 100.0 if step == steps else step * 100.0 / steps
                self._report(stage, progress, on_progress)
        finally:
            if work_task is not None and not work_task.done():
                work_task.cancel()

        return result

    def _raise_if_failed(self, stage_name: str, work_task: asyncio.Future) -> None:
        if work_task.cancelled():
            return
        exc = work_task.exception()
        if exc is not None:
            logger.error(f"Stage '{stage_name}' failed: {exc}")
            raise StageFailedError(stage_name) from exc

    async def _finish_work(self, stage_name: str, work_task: asyncio.Future) -> Any:
        try:
            return await work_task
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(f"Stage '{stage_name}' failed: {exc}")
            raise StageFailedError(stage_name) from exc

    def _report(self, stage: PipelineStage, progress: float, on_progress: Optional[ProgressCallback]) -> None:
        if self._cancelled:
            raise asyncio.CancelledError()
        # Never report a regression
        stage.progress = max(stage.progress, progress)
        if on_progress is not None:
            on_progress(stage.name, stage.progress)
