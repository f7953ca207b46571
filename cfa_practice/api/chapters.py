from fastapi import APIRouter, Depends, HTTPException, Response
from typing import List
from sqlalchemy.orm import Session
from cfa_practice.core.auth import require_roles
from cfa_practice.core.database import get_db
from cfa_practice.models.schemas import ChapterOut, ChapterWithTopic, ChapterCreate, ChapterUpdate, TopicOut, dump_update
from cfa_practice.services import storage

router = APIRouter()

@router.get("", response_model=List[ChapterWithTopic])
def list_all_chapters(db: Session = Depends(get_db)):
    rows = []
    for topic in storage.list_topics(db):
        t = TopicOut.model_validate(topic)
        rows.extend(ChapterWithTopic.model_validate(c).model_copy(update={"topic": t}) for c in storage.list_chapters_by_topic(db, topic.id))
    return rows

@router.get("/topic/{topic_id}", response_model=List[ChapterOut])
def list_topic_chapters(topic_id: int, db: Session = Depends(get_db)):
    return storage.list_chapters_by_topic(db, topic_id)

@router.get("/{chapter_id}", response_model=ChapterOut)
def get_chapter(chapter_id: int, db: Session = Depends(get_db)):
    chapter = storage.get_chapter(db, chapter_id)
    if not chapter: raise HTTPException(404, "Chapter not found")
    return chapter

@router.post("", response_model=ChapterOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_chapter(payload: ChapterCreate, db: Session = Depends(get_db)):
    if not storage.get_topic(db, payload.topic_id): raise HTTPException(404, "Topic not found")
    chapter = storage.create_chapter(db, payload.model_dump())
    db.commit()
    return chapter

@router.patch("/{chapter_id}", response_model=ChapterOut, dependencies=[Depends(require_roles("admin"))])
def update_chapter(chapter_id: int, payload: ChapterUpdate, db: Session = Depends(get_db)):
    chapter = storage.get_chapter(db, chapter_id)
    if not chapter: raise HTTPException(404, "Chapter not found")
    data = dump_update(payload, nullable=("description",))
    if "topic_id" in data and not storage.get_topic(db, data["topic_id"]): raise HTTPException(404, "Topic not found")
    storage.update_chapter(db, chapter, data)
    db.commit()
    return chapter

@router.delete("/{chapter_id}", status_code=204, dependencies=[Depends(require_roles("admin"))])
def delete_chapter(chapter_id: int, db: Session = Depends(get_db)):
    chapter = storage.get_chapter(db, chapter_id)
    if not chapter: raise HTTPException(404, "Chapter not found")
    storage.delete_chapter(db, chapter)
    db.commit()
    return Response(status_code=204)
