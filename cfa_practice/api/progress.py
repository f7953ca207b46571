from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from typing import List, Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import get_current_user, ensure_self_or_admin
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User
from cfa_practice.models.schemas import CamelModel, OptionLabel, AnswerOut, ProgressOut, ProgressWithTopic, ActivityOut, with_topics
from cfa_practice.services import storage
from cfa_practice.services.answers import submit_answer
from cfa_practice.services.analytics import compute_analytics, enrich_activity

router = APIRouter()

class AnswerSubmit(CamelModel):
    user_id: Optional[int] = None
    question_id: int
    user_option: OptionLabel
    time_spent: int = Field(ge=0)
    # accepted for compatibility, never trusted
    is_correct: Optional[bool] = None

@router.post("/answers", response_model=AnswerOut, status_code=201)
def post_answer(payload: AnswerSubmit, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.user_id is not None and payload.user_id != user.id:
        raise HTTPException(403, "Answers can only be submitted for the signed-in user")
    return submit_answer(db, user.id, payload.question_id, payload.user_option, payload.time_spent)

@router.get("/progress/{user_id}", response_model=List[ProgressWithTopic])
def user_progress(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, user_id)
    topics = {t.id: t for t in storage.list_topics(db)}
    return with_topics(storage.list_user_progress(db, user_id), ProgressWithTopic, topics)

@router.get("/progress/{user_id}/topic/{topic_id}", response_model=ProgressOut)
def user_topic_progress(user_id: int, topic_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, user_id)
    progress = storage.get_progress_by_user_and_topic(db, user_id, topic_id)
    if not progress:
        return ProgressOut(user_id=user_id, topic_id=topic_id)
    return progress

@router.get("/activity/{user_id}", response_model=List[ActivityOut])
def user_activity(user_id: int, limit: Optional[int] = Query(None, ge=1, le=200),
                  user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, user_id)
    topics = {t.id: t for t in storage.list_topics(db)}
    activities = storage.list_user_activity(db, user_id, limit or settings.ACTIVITY_DEFAULT_LIMIT)
    return enrich_activity(activities, topics)

@router.get("/analytics/{user_id}")
def user_analytics(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, user_id)
    return compute_analytics(db, user_id, settings.RECENT_ACTIVITY_LIMIT)
