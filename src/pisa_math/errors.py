class PipelineError(RuntimeError):
    """Fatal pipeline error tagged with the stage that raised it."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class DataLoadError(PipelineError):
    """Input table missing or unreadable."""


class DataShapeError(PipelineError):
    """Table shape violates a stage contract (empty split, missing target, ...)."""


class FittingError(PipelineError):
    """Model fitting failed on every fold or every grid point."""


class EvaluationError(PipelineError):
    """Predictions and labels do not line up."""
