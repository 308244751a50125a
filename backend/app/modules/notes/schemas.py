from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NoteStatus(str, Enum):
    Open = "open"
    Completed = "completed"


class PermissionLevel(str, Enum):
    Read = "read"
    Write = "write"


class NoteCreate(BaseModel):
    ContainerKey: str = Field(..., max_length=255)
    Title: str = Field(..., max_length=500)
    Content: str = ""
    Deadline: datetime | None = None
    IsPublic: bool = False


# Fields left out of the request body are untouched; an explicit null clears.
class NoteUpdate(BaseModel):
    Title: str | None = Field(default=None, max_length=500)
    Content: str | None = None
    Deadline: datetime | None = None
    IsPublic: bool | None = None
    Status: str | None = None


class NotePermissionsOut(BaseModel):
    CanRead: bool
    CanEdit: bool
    IsOwner: bool


class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    Id: int
    ContainerKey: str
    Title: str
    Content: str
    OwnerUserId: str
    Deadline: datetime | None = None
    IsPublic: bool
    Status: str
    CreatedAt: datetime
    UpdatedAt: datetime
    Permissions: NotePermissionsOut | None = None


class GrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    NoteId: int
    UserId: str
    PermissionType: str
    GrantedByUserId: str
    GrantedAt: datetime


class ShareRequest(BaseModel):
    PermissionType: str = PermissionLevel.Read.value


class ShareManyRequest(BaseModel):
    UserIds: list[str] = Field(default_factory=list)
    PermissionType: str = PermissionLevel.Read.value


class ShareOutcomeOut(BaseModel):
    UserId: str
    Success: bool
    Error: str | None = None


class ShareUserOut(BaseModel):
    AccountId: str
    DisplayName: str | None = None
    AvatarUrl: str | None = None


class NoteStatisticsOut(BaseModel):
    TotalCount: int
    MyCount: int
    SharedCount: int
    UpcomingDeadlines: int


# Outcome envelopes. Failures are rendered by the app-level exception handlers.
class OutcomeBase(BaseModel):
    Success: bool = True


class NoteResult(OutcomeBase):
    Note: NoteOut


class NoteListResult(OutcomeBase):
    Notes: list[NoteOut] = Field(default_factory=list)


class DeleteResult(OutcomeBase):
    DeletedId: int


class GrantResult(OutcomeBase):
    Grant: GrantOut


class GrantListResult(OutcomeBase):
    Grants: list[GrantOut] = Field(default_factory=list)


class RevokeResult(OutcomeBase):
    NoteId: int
    UserId: str


class ShareManyResult(OutcomeBase):
    Results: list[ShareOutcomeOut] = Field(default_factory=list)
    Total: int
    Succeeded: int
    Failed: int


class ShareUserListResult(OutcomeBase):
    Users: list[ShareUserOut] = Field(default_factory=list)


class NoteStatisticsResult(OutcomeBase):
    Statistics: NoteStatisticsOut


class JqlSearchRequest(BaseModel):
    Function: str = Field(..., max_length=64)
    Operator: str = "in"
    Arguments: list[str] = Field(default_factory=list)


class JqlSearchResult(OutcomeBase):
    Jql: str
