from fastapi import APIRouter, Depends, HTTPException, Response, Query
from typing import List, Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import require_roles
from cfa_practice.core.database import get_db
from cfa_practice.models.schemas import (
    PracticeSetOut, PracticeSetWithTopic, PracticeSetCreate, PracticeSetUpdate, dump_update, with_topics,
)
from cfa_practice.services import storage

router = APIRouter()

def _topic_map(db: Session):
    return {t.id: t for t in storage.list_topics(db)}

@router.get("", response_model=List[PracticeSetWithTopic])
def list_practice_sets(topic: Optional[int] = Query(None), db: Session = Depends(get_db)):
    return with_topics(storage.list_practice_sets(db, topic), PracticeSetWithTopic, _topic_map(db))

@router.get("/recommended/{user_id}", response_model=List[PracticeSetWithTopic])
def recommended_practice_sets(user_id: int, db: Session = Depends(get_db)):
    return with_topics(storage.list_recommended_practice_sets(db, user_id), PracticeSetWithTopic, _topic_map(db))

@router.post("", response_model=PracticeSetOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_practice_set(payload: PracticeSetCreate, db: Session = Depends(get_db)):
    if not storage.get_topic(db, payload.topic_id): raise HTTPException(404, "Topic not found")
    ps = storage.create_practice_set(db, payload.model_dump())
    db.commit()
    return ps

@router.patch("/{practice_set_id}", response_model=PracticeSetOut, dependencies=[Depends(require_roles("admin"))])
def update_practice_set(practice_set_id: int, payload: PracticeSetUpdate, db: Session = Depends(get_db)):
    ps = storage.get_practice_set(db, practice_set_id)
    if not ps: raise HTTPException(404, "Practice set not found")
    data = dump_update(payload, nullable=("subtopic",))
    if "topic_id" in data and not storage.get_topic(db, data["topic_id"]): raise HTTPException(404, "Topic not found")
    storage.update_practice_set(db, ps, data)
    db.commit()
    return ps

@router.delete("/{practice_set_id}", status_code=204, dependencies=[Depends(require_roles("admin"))])
def delete_practice_set(practice_set_id: int, db: Session = Depends(get_db)):
    ps = storage.get_practice_set(db, practice_set_id)
    if not ps: raise HTTPException(404, "Practice set not found")
    storage.delete_practice_set(db, ps)
    db.commit()
    return Response(status_code=204)
