"""
Run configuration and trigger context models.
"""

import posixpath
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

PATH_FIELDS = ("working_directory", "validate_directory", "docs_output_file", "renovate_config")

class TriggerKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"
    SCHEDULE = "schedule"

class TriggerContext(BaseModel):
    """Why the pipeline runs. Unrecognized kinds are kept verbatim."""
    kind: str
    branch: str = ""
    actor: str = ""
    repository: str = ""

    class Config:
        frozen = True

    @property
    def trigger_kind(self) -> Optional[TriggerKind]:
        try:
            return TriggerKind(self.kind)
        except ValueError:
            return None

def check_relative_path(value: str) -> str:
    """Normalize a repository-relative path, rejecting anything outside the root."""
    if not value or not value.strip():
        raise ValueError("path must not be empty")

    candidate = value.strip().replace("\\", "/")
    if posixpath.isabs(candidate) or (len(candidate) > 1 and candidate[1] == ":"):
        raise ValueError(f"path '{value}' must be relative to the repository root")

    normalized = posixpath.normpath(candidate)
    if normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"path '{value}' escapes the repository root")

    return normalized

class RunConfiguration(BaseModel):
    """Fully resolved options for one pipeline invocation."""
    runner: str = "ubuntu-latest"
    working_directory: str = "."
    validate_directory: str = ""  # falls back to working_directory
    tool: Literal["terraform", "tofu"] = "terraform"
    tool_version: str = "latest"
    enable_security_scan: bool = False
    enable_docs: bool = False
    docs_output_file: str = "README.md"
    allowed_pr_author: str = ""
    main_branch: str = "main"
    enable_dependency_updates: bool = False
    renovate_config: str = "renovate.json"
    renovate_debug: bool = False
    step_timeout: int = Field(default=900, gt=0)

    class Config:
        frozen = True
        extra = "forbid"

    @model_validator(mode="before")
    @classmethod
    def default_validate_directory(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("validate_directory"):
            data = dict(data)
            data["validate_directory"] = data.get("working_directory") or "."
        return data

    @field_validator(*PATH_FIELDS)
    @classmethod
    def relative_paths(cls, value: str) -> str:
        return check_relative_path(value)

    @field_validator("tool_version")
    @classmethod
    def empty_version_is_latest(cls, value: str) -> str:
        return value.strip() or "latest"

    @field_validator("runner", "main_branch")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @property
    def tenv_tool(self) -> str:
        """Tool name as understood by tenv."""
        return "tf" if self.tool == "terraform" else "tofu"

    @property
    def version_pinned(self) -> bool:
        return self.tool_version != "latest"
