from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from controller.src.models.run import TriggerContext
from controller.src.models.step import PipelineResult

class PipelineRunResponse(BaseModel):
    id: str
    status: str
    trigger: TriggerContext
    repo_full_name: str = ""
    commit_sha: str = ""
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None
    result: Optional[PipelineResult] = None

class PipelineRunSummary(BaseModel):
    id: str
    status: str
    kind: str
    branch: str
    actor: str
    exit_code: Optional[int] = None
    created_at: datetime
