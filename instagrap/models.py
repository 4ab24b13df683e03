"""
Persisted entities and command request bodies.

Everything in AppState is written to disk as one JSON document; the
request models describe the arguments the UI sends to each command.
"""

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

OperationStatus = Literal["running", "completed", "failed"]
TodoStatus = Literal["pending", "running", "completed", "failed"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


###############################################################################
# 1. Persisted entities
###############################################################################

class ScrapingOperation(BaseModel):
    operation_id   : str
    target_account : str
    target_count   : int
    started_at     : str
    status         : OperationStatus
    results        : Optional[List[Any]] = None   # opaque rows from the scrape service
    error_message  : Optional[str] = None
    exec_id        : Optional[str] = None


class Todo(BaseModel):
    id                   : str
    target_account       : str
    target_count         : int
    bio_agents           : int
    batch_size           : int
    status               : TodoStatus = "pending"
    created_at           : str = Field(default_factory=utc_now_iso)
    started_at           : Optional[str] = None
    completed_at         : Optional[str] = None
    operation_id         : Optional[str] = None
    exec_id              : Optional[str] = None
    results              : Optional[List[Any]] = None
    error_message        : Optional[str] = None
    manually_completed   : bool = False
    criteria_preset_id   : Optional[str] = None
    # preset name as of selection time
    criteria_preset_name : Optional[str] = None


class SavedCriteriaPreset(BaseModel):
    id         : str
    name       : str
    criteria   : str
    created_at : str
    updated_at : str


class AppState(BaseModel):
    """The whole on-disk document."""

    scraping_operations : List[ScrapingOperation] = Field(default_factory=list)
    last_login_gcs_uri  : Optional[str] = None
    todos               : List[Todo] = Field(default_factory=list)
    saved_criteria      : List[SavedCriteriaPreset] = Field(default_factory=list)
    # None -> the classifier's own default criteria
    active_criteria_id  : Optional[str] = None


###############################################################################
# 2. Command request bodies
###############################################################################

class LoginRequest(BaseModel):
    bucket_url : str = Field(..., examples=["gs://insta-state/"])


class RegisterStateRequest(BaseModel):
    gcs_uri : str


class ScrapeStatusRequest(BaseModel):
    exec_id          : str = ""
    target           : str
    legacy_operation : Optional[str] = None


class RemoteScrapeRequest(BaseModel):
    target             : str = Field(..., examples=["utmartin"])
    target_yes         : int = Field(50, ge=1, le=500)
    batch_size         : int = Field(30, ge=10, le=100)
    num_bio_pages      : int = Field(3, ge=1, le=10)
    criteria_preset_id : Optional[str] = None
    criteria_text      : Optional[str] = None


class DeleteArtifactsRequest(BaseModel):
    target  : str
    exec_id : str


class OperationIdRequest(BaseModel):
    operation_id : str


class SaveFileRequest(BaseModel):
    content   : str
    filename  : str
    file_type : str = ""


class ExportResultsRequest(BaseModel):
    results : List[Any]
    format  : Literal["csv", "json"] = "csv"


class UpdatePromptRequest(BaseModel):
    criteria : str


class CreateTodoRequest(BaseModel):
    target_account     : str
    target_count       : int = Field(50, ge=1, le=500)
    bio_agents         : int = Field(3, ge=1, le=10)
    batch_size         : int = Field(30, ge=10, le=100)
    criteria_preset_id : Optional[str] = None


class TodoIdRequest(BaseModel):
    todo_id : str


class UpdateTodoStatusRequest(BaseModel):
    todo_id       : str
    status        : TodoStatus
    operation_id  : Optional[str] = None
    exec_id       : Optional[str] = None
    results       : Optional[List[Any]] = None
    error_message : Optional[str] = None


class SetTodoPresetRequest(BaseModel):
    todo_id   : str
    preset_id : Optional[str] = None


class CreatePresetRequest(BaseModel):
    name     : str
    criteria : str


class RenamePresetRequest(BaseModel):
    id   : str
    name : str


class UpdatePresetContentRequest(BaseModel):
    id       : str
    criteria : str


class PresetIdRequest(BaseModel):
    id : str


class SetActiveCriteriaRequest(BaseModel):
    id : Optional[str] = None
