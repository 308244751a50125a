import hmac
import logging
import os

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.notifications.delivery import ResolveDeliveryChannel
from app.modules.notifications.schemas import ReminderListResult, ReminderOut, SweepRunResult
from app.modules.notifications.services import ListRemindersForUser
from app.modules.notifications.sweep_service import RunSweep

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger("notifications")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("notifications database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notifications storage not initialized. Run alembic upgrade head.",
    ) from exc


def RequireSweepToken(x_sweep_token: str | None = Header(default=None)) -> None:
    expected = os.getenv("NOTES_SWEEP_TOKEN", "").strip()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sweep trigger is not configured",
        )
    if not x_sweep_token or not hmac.compare_digest(x_sweep_token.strip(), expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid sweep token")


@router.get("", response_model=ReminderListResult)
def ListMyReminders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ReminderListResult:
    try:
        records = ListRemindersForUser(db, user.Id, limit=limit, offset=offset)
        return ReminderListResult(Reminders=[ReminderOut.model_validate(record) for record in records])
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/sweep", response_model=SweepRunResult)
def RunReminderSweep(
    db: Session = Depends(GetDb),
    _token: None = Depends(RequireSweepToken),
) -> SweepRunResult:
    """Deliver due deadline reminders. Intended for a scheduler, not end users."""
    channel = ResolveDeliveryChannel()
    if channel is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder delivery is not configured",
        )
    try:
        result = RunSweep(db, channel)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    finally:
        channel.Close()
    return SweepRunResult(
        Total=result.Total,
        Sent=result.Sent,
        Failed=result.Failed,
        Abandoned=result.Abandoned,
        Skipped=result.Skipped,
    )
