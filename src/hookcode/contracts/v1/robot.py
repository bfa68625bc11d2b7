from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...util.time import utc_now_iso
from .automation import TimeWindow

RobotPermission = Literal["read", "write"]


class RepoRobot(BaseModel):
    """A repository-scoped robot (AI agent identity)."""

    id: str
    repo_id: str = Field(alias="repoId")
    name: str = ""
    permission: RobotPermission = "read"
    enabled: bool = True
    is_default: bool = Field(default=False, alias="isDefault")
    prompt_default: str = Field(default="", alias="promptDefault")
    repo_token_username: Optional[str] = Field(default=None, alias="repoTokenUsername")
    time_window: Optional[TimeWindow] = Field(default=None, alias="timeWindow")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
