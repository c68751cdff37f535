#Progression feature - XP, levels, streaks, badges
from typing import List
from fastapi import APIRouter, HTTPException, Depends, Query
from cbse_tutor.common.deps import get_current_user, CurrentUser
from .schemas import (
    BadgeDefinition, CompletionOutcome, CompletionRequest,
    EarnedBadge, ProgressionSummary, StreakInfo, XPTransaction,
)
from .service import progression_service, ProgressionConflictError, ProgressionWriteError

router = APIRouter(prefix="/progression", tags=["progression"])

def _err(status: int, code: str, message: str):
    return HTTPException(status_code=status, detail={"error_code": code, "message": message})

#counters + level progress for the home screen
@router.get("/me", response_model=ProgressionSummary)
async def get_my_progression(current_user: CurrentUser = Depends(get_current_user)):
    return await progression_service.get_summary(current_user.id)

@router.get("/me/streak", response_model=StreakInfo)
async def get_my_streak(current_user: CurrentUser = Depends(get_current_user)):
    return await progression_service.get_streak(current_user.id)

#earned badges, newest first
@router.get("/me/badges", response_model=List[EarnedBadge])
async def get_my_badges(current_user: CurrentUser = Depends(get_current_user)):
    return await progression_service.list_badges(current_user.id)

#recent XP history feed
@router.get("/me/xp", response_model=List[XPTransaction])
async def get_my_recent_xp(
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await progression_service.recent_xp(current_user.id, limit)

#all non-secret badges, for progress tracking
@router.get("/badges", response_model=List[BadgeDefinition])
async def get_badge_catalog(current_user: CurrentUser = Depends(get_current_user)):
    return await progression_service.list_badge_catalog()

#apply a completed activity (practice, lesson, quiz) outside the assessment flow
@router.post("/me/complete", response_model=CompletionOutcome)
async def complete_activity(req: CompletionRequest, current_user: CurrentUser = Depends(get_current_user)):
    try:
        return await progression_service.complete_request(current_user.id, req)
    except ProgressionConflictError as e:
        raise _err(409, "E_CONFLICT", str(e))
    except ProgressionWriteError as e:
        raise _err(503, "E_UNKNOWN", str(e))
