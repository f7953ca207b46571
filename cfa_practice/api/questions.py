from fastapi import APIRouter, Depends, HTTPException, Response
from typing import List
from sqlalchemy.orm import Session
from cfa_practice.core.auth import require_roles
from cfa_practice.core.database import get_db
from cfa_practice.models.schemas import QuestionOut, QuestionCreate, QuestionUpdate, dump_update
from cfa_practice.services import storage

router = APIRouter()
topic_questions_router = APIRouter()

def _check_refs(db: Session, topic_id: int, chapter_id: int | None):
    if not storage.get_topic(db, topic_id): raise HTTPException(404, "Topic not found")
    if chapter_id is not None:
        chapter = storage.get_chapter(db, chapter_id)
        if not chapter: raise HTTPException(404, "Chapter not found")
        if chapter.topic_id != topic_id: raise HTTPException(400, "Chapter belongs to a different topic")

@topic_questions_router.get("/{topic_id}", response_model=List[QuestionOut])
def list_topic_questions(topic_id: int, db: Session = Depends(get_db)):
    return storage.list_questions_by_topic(db, topic_id)

@router.get("/all", response_model=List[QuestionOut], dependencies=[Depends(require_roles("admin"))])
def list_all_questions(db: Session = Depends(get_db)):
    return storage.list_all_questions(db)

@router.get("/chapter/{chapter_id}", response_model=List[QuestionOut])
def list_chapter_questions(chapter_id: int, db: Session = Depends(get_db)):
    return storage.list_questions_by_chapter(db, chapter_id)

@router.get("/{question_id}", response_model=QuestionOut)
def get_question(question_id: int, db: Session = Depends(get_db)):
    q = storage.get_question(db, question_id)
    if not q: raise HTTPException(404, "Question not found")
    return q

@router.post("", response_model=QuestionOut, status_code=201, dependencies=[Depends(require_roles("admin"))])
def create_question(payload: QuestionCreate, db: Session = Depends(get_db)):
    _check_refs(db, payload.topic_id, payload.chapter_id)
    q = storage.create_question(db, payload.model_dump())
    db.commit()
    return q

@router.patch("/{question_id}", response_model=QuestionOut, dependencies=[Depends(require_roles("admin"))])
def update_question(question_id: int, payload: QuestionUpdate, db: Session = Depends(get_db)):
    q = storage.get_question(db, question_id)
    if not q: raise HTTPException(404, "Question not found")
    data = dump_update(payload, nullable=("chapter_id", "subtopic", "context", "option_d"))
    if "topic_id" in data or "chapter_id" in data:
        _check_refs(db, data.get("topic_id", q.topic_id), data.get("chapter_id", q.chapter_id))
    correct = data.get("correct_option", q.correct_option)
    option_d = data.get("option_d", q.option_d)
    if correct == "D" and not option_d: raise HTTPException(400, "correctOption D requires optionD")
    storage.update_question(db, q, data)
    db.commit()
    return q

@router.delete("/{question_id}", status_code=204, dependencies=[Depends(require_roles("admin"))])
def delete_question(question_id: int, db: Session = Depends(get_db)):
    q = storage.get_question(db, question_id)
    if not q: raise HTTPException(404, "Question not found")
    storage.delete_question(db, q)
    db.commit()
    return Response(status_code=204)
