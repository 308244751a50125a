import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.notes.schemas import JqlSearchRequest, JqlSearchResult
from app.modules.notes.services.search_service import RunSearchFunction

router = APIRouter()
logger = logging.getLogger("notes.search")


@router.post("/jql", response_model=JqlSearchResult)
def RunJqlSearch(
    payload: JqlSearchRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> JqlSearchResult:
    """Resolve a note search function to a JQL fragment over issue keys."""
    try:
        jql = RunSearchFunction(db, payload.Function, payload.Operator, payload.Arguments)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        logger.exception("notes search database error")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to search notes. Please try again later.",
        ) from exc
    return JqlSearchResult(Jql=jql)
