from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("floorhub.steps")


@dataclass(frozen=True)
class PipelineStep:
    """Named unit of work; skipped when skip_if(context) is true."""
    name: str
    fn: Callable[[object], None]
    skip_if: Optional[Callable[[object], bool]] = None


class StepRunner:
    """Run pipeline steps in declaration order against one mutable context."""

    def __init__(self, steps: List[PipelineStep]) -> None:
        names = [step.name for step in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate step names: {names}")
        self._steps = tuple(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: object, label: str = "") -> List[str]:
        """Purpose: Execute every step whose skip guard allows it.
        Inputs/Outputs: Inputs are the context and a log label (session id); returns the
            names of the steps that actually ran.
        Side Effects / State: Step functions mutate the context.
        Dependencies: PipelineStep.fn and PipelineStep.skip_if.
        Failure Modes: A failing step is logged with its name and the exception is re-raised;
            later steps do not run.
        If Removed: Chat messages are never routed.
        Testing Notes: A step guarded by a true skip_if must be missing from the result.
        """
        # Guards are evaluated lazily so earlier steps can change the outcome.
        executed: List[str] = []
        for step in self._steps:
            if step.skip_if is not None and step.skip_if(context):
                continue
            started = time.perf_counter()
            try:
                step.fn(context)
            except Exception:
                logger.warning("session=%s step=%s status=error", label, step.name)
                raise
            executed.append(step.name)
            logger.debug(
                "session=%s step=%s elapsed_ms=%.1f", label, step.name, (time.perf_counter() - started) * 1000
            )
        return executed
