from fastapi import APIRouter, Depends, HTTPException, Response
from typing import List
from sqlalchemy.orm import Session
from cfa_practice.core.auth import require_roles
from cfa_practice.core.database import get_db
from cfa_practice.models.schemas import TopicOut, TopicCreate, TopicUpdate, dump_update
from cfa_practice.services import storage

router = APIRouter()

@router.get("", response_model=List[TopicOut])
def list_topics(db: Session = Depends(get_db)):
    return storage.list_topics(db)

@router.get("/{topic_id}", response_model=TopicOut)
def get_topic(topic_id: int, db: Session = Depends(get_db)):
    topic = storage.get_topic(db, topic_id)
    if not topic: raise HTTPException(404, "Topic not found")
    return topic

@router.post("", response_model=TopicOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_topic(payload: TopicCreate, db: Session = Depends(get_db)):
    if storage.get_topic_by_name(db, payload.name): raise HTTPException(409, "Topic name already exists")
    topic = storage.create_topic(db, payload.model_dump())
    db.commit()
    return topic

@router.patch("/{topic_id}", response_model=TopicOut, dependencies=[Depends(require_roles("admin"))])
def update_topic(topic_id: int, payload: TopicUpdate, db: Session = Depends(get_db)):
    topic = storage.get_topic(db, topic_id)
    if not topic: raise HTTPException(404, "Topic not found")
    data = dump_update(payload, nullable=("description", "icon"))
    if "name" in data:
        clash = storage.get_topic_by_name(db, data["name"])
        if clash and clash.id != topic_id: raise HTTPException(409, "Topic name already exists")
    storage.update_topic(db, topic, data)
    db.commit()
    return topic

@router.delete("/{topic_id}", status_code=204, dependencies=[Depends(require_roles("admin"))])
def delete_topic(topic_id: int, db: Session = Depends(get_db)):
    topic = storage.get_topic(db, topic_id)
    if not topic: raise HTTPException(404, "Topic not found")
    if storage.list_questions_by_topic(db, topic_id):
        raise HTTPException(409, "Topic still has questions; delete or move them first")
    storage.delete_topic(db, topic)
    db.commit()
    return Response(status_code=204)
