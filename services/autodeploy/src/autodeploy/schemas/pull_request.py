"""Pull request schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..pull_requests import FileDiff


class PullRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    project_id: str
    pr_number: int
    title: str
    description: str
    status: str
    diff: list[FileDiff] = Field(validation_alias="diff_json")
    patch_folder_path: str | None
    created_at: datetime | None = None
