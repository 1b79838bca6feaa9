from api.src.models.run import PipelineRunResponse, PipelineRunSummary

__all__ = [
    "PipelineRunResponse",
    "PipelineRunSummary",
]
