import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.integrations.tracker.client import TrackerError
from app.modules.notes.schemas import (
    DeleteResult,
    GrantListResult,
    GrantOut,
    GrantResult,
    NoteCreate,
    NoteListResult,
    NoteOut,
    NotePermissionsOut,
    NoteResult,
    NoteStatisticsOut,
    NoteStatisticsResult,
    NoteUpdate,
    RevokeResult,
    ShareManyRequest,
    ShareManyResult,
    ShareOutcomeOut,
    ShareRequest,
    ShareUserListResult,
    ShareUserOut,
)
from app.modules.notes.services import notes_service
from app.modules.notes.services.notes_service import (
    NoteAccessError,
    NoteChanges,
    NoteNotFoundError,
    NoteView,
)

router = APIRouter()
logger = logging.getLogger("notes.routes")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("notes database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notes storage not initialized. Run alembic upgrade head.",
    ) from exc


def _handle_note_error(exc: Exception) -> None:
    detail = str(exc)
    if isinstance(exc, NoteNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail) from exc
    if isinstance(exc, NoteAccessError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc


def _BuildNoteViewOut(view: NoteView) -> NoteOut:
    note_out = NoteOut.model_validate(view.Note)
    note_out.Permissions = NotePermissionsOut(
        CanRead=view.CanRead,
        CanEdit=view.CanEdit,
        IsOwner=view.IsOwner,
    )
    return note_out


@router.post("", response_model=NoteResult, status_code=status.HTTP_201_CREATED)
def CreateNoteItem(
    payload: NoteCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteResult:
    try:
        note = notes_service.CreateNote(db, user, payload)
        return NoteResult(Note=NoteOut.model_validate(note))
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/mine", response_model=NoteListResult)
def ListMyNoteItems(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteListResult:
    try:
        notes = notes_service.ListMyNotes(db, user)
        return NoteListResult(Notes=[NoteOut.model_validate(note) for note in notes])
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/statistics", response_model=NoteStatisticsResult)
def GetNoteStatistics(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteStatisticsResult:
    try:
        stats = notes_service.GetStatistics(db, user)
        return NoteStatisticsResult(
            Statistics=NoteStatisticsOut(
                TotalCount=stats.TotalCount,
                MyCount=stats.MyCount,
                SharedCount=stats.SharedCount,
                UpcomingDeadlines=stats.UpcomingDeadlines,
            )
        )
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/share-users", response_model=ShareUserListResult)
def ListShareUserItems(
    container_key: str = Query(..., min_length=1, max_length=255),
    user: UserContext = Depends(RequireAuthenticated),
) -> ShareUserListResult:
    """Project members the note can be shared with."""
    try:
        users = notes_service.ListShareUsers(container_key)
    except ValueError as exc:
        _handle_note_error(exc)
    except TrackerError as exc:
        logger.warning("share user lookup failed container=%s error=%s", container_key, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ShareUserListResult(
        Users=[ShareUserOut(**entry) for entry in users if entry.get("AccountId") != user.Id]
    )


@router.get("/containers/{container_key}", response_model=NoteListResult)
def ListContainerNoteItems(
    container_key: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteListResult:
    try:
        views = notes_service.ListNotesForContainer(db, user, container_key)
        return NoteListResult(Notes=[_BuildNoteViewOut(view) for view in views])
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/containers/{container_key}/public", response_model=NoteListResult)
def ListPublicContainerNoteItems(
    container_key: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteListResult:
    try:
        notes = notes_service.ListPublicNotesForContainer(db, container_key)
        return NoteListResult(Notes=[NoteOut.model_validate(note) for note in notes])
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{note_id}", response_model=NoteResult)
def GetNoteItem(
    note_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteResult:
    try:
        note = notes_service.GetNote(db, user, note_id)
        return NoteResult(Note=_BuildNoteViewOut(notes_service.BuildNoteView(db, user, note)))
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.patch("/{note_id}", response_model=NoteResult)
def UpdateNoteItem(
    note_id: int,
    payload: NoteUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NoteResult:
    try:
        note = notes_service.UpdateNote(db, user, note_id, NoteChanges.FromPayload(payload))
        return NoteResult(Note=NoteOut.model_validate(note))
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{note_id}", response_model=DeleteResult)
def DeleteNoteItem(
    note_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> DeleteResult:
    try:
        notes_service.DeleteNote(db, user, note_id)
        return DeleteResult(DeletedId=note_id)
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{note_id}/permissions", response_model=GrantListResult)
def ListNoteGrantItems(
    note_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> GrantListResult:
    try:
        grants = notes_service.ListNoteGrants(db, user, note_id)
        return GrantListResult(Grants=[GrantOut.model_validate(grant) for grant in grants])
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{note_id}/permissions", response_model=ShareManyResult)
def ShareNoteManyItem(
    note_id: int,
    payload: ShareManyRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ShareManyResult:
    try:
        outcome = notes_service.ShareNoteMany(db, user, note_id, payload.UserIds, payload.PermissionType)
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return ShareManyResult(
        Results=[
            ShareOutcomeOut(UserId=entry.UserId, Success=entry.Success, Error=entry.Error)
            for entry in outcome.Results
        ],
        Total=outcome.Total,
        Succeeded=outcome.Succeeded,
        Failed=outcome.Failed,
    )


@router.put("/{note_id}/permissions/{target_user_id}", response_model=GrantResult)
def ShareNoteItem(
    note_id: int,
    target_user_id: str,
    payload: ShareRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> GrantResult:
    try:
        grant = notes_service.ShareNote(db, user, note_id, target_user_id, payload.PermissionType)
        return GrantResult(Grant=GrantOut.model_validate(grant))
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{note_id}/permissions/{target_user_id}", response_model=RevokeResult)
def RevokeNoteAccessItem(
    note_id: int,
    target_user_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> RevokeResult:
    try:
        notes_service.RevokeAccess(db, user, note_id, target_user_id)
        return RevokeResult(NoteId=note_id, UserId=target_user_id)
    except ValueError as exc:
        _handle_note_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
