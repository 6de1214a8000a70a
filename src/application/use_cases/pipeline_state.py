from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger("src.application.pipeline")


class PipelineStage(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    GENERATING = "generating"
    STORING = "storing"
    RECORDING = "recording"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class PipelineRun:
    """Tracks one request through the pipeline stages. Not shared between requests."""

    label: str
    stage: PipelineStage = PipelineStage.RECEIVED
    history: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.RECEIVED])

    def advance(self, stage: PipelineStage) -> None:
        logger.info("[%s] %s -> %s", self.label, self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    def fail(self, error: BaseException) -> None:
        logger.error("[%s] failed while %s: %s", self.label, self.stage.value, error)
        self.stage = PipelineStage.ERRORED
        self.history.append(PipelineStage.ERRORED)
