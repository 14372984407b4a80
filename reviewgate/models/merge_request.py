from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class MergeRequestDiffRefs(BaseModel):
    """SHAs GitLab needs to anchor a discussion on a diff line."""

    model_config = ConfigDict(extra="ignore")

    base_sha: Optional[str] = None
    start_sha: Optional[str] = None
    head_sha: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.base_sha and self.start_sha and self.head_sha)


class MergeRequest(BaseModel):
    """A GitLab merge request as returned by the MR endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mr_id: int = Field(..., alias="iid")
    project_id: Optional[int] = None
    title: Optional[str] = ""
    description: Optional[str] = None
    state: Optional[str] = "opened"
    head_sha: Optional[str] = Field(None, alias="sha")
    url: Optional[str] = Field(None, alias="web_url")
    source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    draft: Optional[bool] = False
    work_in_progress: Optional[bool] = False
    updated_at: Optional[str] = None
    diff_refs: Optional[MergeRequestDiffRefs] = None

    def is_reviewable(self) -> bool:
        return (
            (self.state or "").lower() == "opened"
            and not self.draft
            and not self.work_in_progress
            and bool(self.head_sha)
        )


class MergeRequestDiff(BaseModel):
    """One changed file of a merge request."""

    model_config = ConfigDict(extra="ignore")

    old_path: Optional[str] = None
    new_path: Optional[str] = None
    new_file: Optional[bool] = False
    deleted_file: Optional[bool] = False
    renamed_file: Optional[bool] = False
    diff: Optional[str] = ""

    @property
    def path(self) -> str:
        return self.new_path or self.old_path or "unknown"
