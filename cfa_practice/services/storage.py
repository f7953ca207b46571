"""
Storage access layer: the only module that issues reads and writes against the database.

Functions flush but never commit; the caller owns the transaction.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy import select, func, update, case, and_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from cfa_practice.models.orm import (
    User, Topic, Chapter, Question, UserAnswer, FirstAttempt, UserProgress, UserActivity,
    PracticeSet, Payment, ErrorLog, utcnow,
)

def _apply(obj, data: Dict[str, Any]):
    for key, value in data.items():
        setattr(obj, key, value)
    return obj

def _add(db: Session, obj):
    db.add(obj)
    db.flush()
    return obj

# ========== Users ==========

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.scalar(select(User).where(User.id == user_id, User.is_deleted.is_(False)))

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.scalar(select(User).where(User.username == username, User.is_deleted.is_(False)))

def username_owner(db: Session, username: str) -> Optional[int]:
    """Id of whichever account, deleted or not, holds this username."""
    return db.scalar(select(User.id).where(User.username == username))

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(User.email == email, User.is_deleted.is_(False)).order_by(User.id).limit(1))

def list_users(db: Session) -> List[User]:
    return list(db.scalars(select(User).where(User.is_deleted.is_(False)).order_by(User.id)))

def create_user(db: Session, username: str, password_hash: str, email: Optional[str] = None,
                level: Optional[str] = None, role: str = "student") -> User:
    user = User(username=username, password=password_hash, email=email or None,
                level=level or "Level I Candidate", role=role or "student",
                is_premium=False, streak_days=0, last_login_date=utcnow())
    return _add(db, user)

def update_user(db: Session, user: User, data: Dict[str, Any]) -> User:
    _apply(user, data)
    db.flush()
    return user

def update_user_streak(db: Session, user: User, streak_days: int) -> User:
    user.streak_days = streak_days
    user.last_login_date = utcnow()
    db.flush()
    return user

def update_user_premium_status(db: Session, user: User, is_premium: bool) -> User:
    user.is_premium = is_premium
    db.flush()
    return user

def delete_user(db: Session, user: User) -> None:
    user.soft_delete()
    db.flush()

# ========== Topics ==========

def list_topics(db: Session) -> List[Topic]:
    return list(db.scalars(select(Topic).where(Topic.is_deleted.is_(False)).order_by(Topic.id)))

def get_topic(db: Session, topic_id: int) -> Optional[Topic]:
    return db.scalar(select(Topic).where(Topic.id == topic_id, Topic.is_deleted.is_(False)))

def get_topic_by_name(db: Session, name: str) -> Optional[Topic]:
    # deleted topics keep their name reserved by the unique constraint
    return db.scalar(select(Topic).where(Topic.name == name))

def create_topic(db: Session, data: Dict[str, Any]) -> Topic:
    return _add(db, Topic(**data))

def update_topic(db: Session, topic: Topic, data: Dict[str, Any]) -> Topic:
    _apply(topic, data)
    db.flush()
    return topic

def delete_topic(db: Session, topic: Topic) -> None:
    topic.soft_delete()
    db.flush()

# ========== Chapters ==========

def list_chapters_by_topic(db: Session, topic_id: int) -> List[Chapter]:
    stmt = select(Chapter).where(Chapter.topic_id == topic_id, Chapter.is_deleted.is_(False)).order_by(Chapter.order, Chapter.id)
    return list(db.scalars(stmt))

def get_chapter(db: Session, chapter_id: int) -> Optional[Chapter]:
    return db.scalar(select(Chapter).where(Chapter.id == chapter_id, Chapter.is_deleted.is_(False)))

def create_chapter(db: Session, data: Dict[str, Any]) -> Chapter:
    return _add(db, Chapter(**data))

def update_chapter(db: Session, chapter: Chapter, data: Dict[str, Any]) -> Chapter:
    _apply(chapter, data)
    db.flush()
    return chapter

def delete_chapter(db: Session, chapter: Chapter) -> None:
    chapter.soft_delete()
    db.flush()

# ========== Questions ==========

def list_questions_by_topic(db: Session, topic_id: int) -> List[Question]:
    stmt = select(Question).where(Question.topic_id == topic_id, Question.is_deleted.is_(False)).order_by(Question.id)
    return list(db.scalars(stmt))

def list_questions_by_chapter(db: Session, chapter_id: int) -> List[Question]:
    stmt = (select(Question).join(Chapter, Chapter.id == Question.chapter_id)
            .where(Question.chapter_id == chapter_id, Question.is_deleted.is_(False), Chapter.is_deleted.is_(False))
            .order_by(Question.id))
    return list(db.scalars(stmt))

def list_all_questions(db: Session) -> List[Question]:
    stmt = (select(Question).join(Topic, Topic.id == Question.topic_id)
            .where(Question.is_deleted.is_(False), Topic.is_deleted.is_(False))
            .order_by(Question.topic_id, Question.id))
    return list(db.scalars(stmt))

def count_available_questions(db: Session) -> int:
    stmt = (select(func.count(Question.id)).join(Topic, Topic.id == Question.topic_id)
            .where(Question.is_deleted.is_(False), Topic.is_deleted.is_(False)))
    return db.scalar(stmt) or 0

def get_question(db: Session, question_id: int) -> Optional[Question]:
    return db.scalar(select(Question).where(Question.id == question_id, Question.is_deleted.is_(False)))

def create_question(db: Session, data: Dict[str, Any]) -> Question:
    return _add(db, Question(**data))

def update_question(db: Session, question: Question, data: Dict[str, Any]) -> Question:
    _apply(question, data)
    db.flush()
    return question

def delete_question(db: Session, question: Question) -> None:
    question.soft_delete()
    db.flush()

# ========== Answers ==========

def claim_first_attempt(db: Session, user_id: int, question_id: int) -> bool:
    """Atomically record the first answer to a question; False if one already exists."""
    stmt = _insert_for(db)(FirstAttempt).values(user_id=user_id, question_id=question_id, answered_at=utcnow())
    result = db.execute(stmt.on_conflict_do_nothing(index_elements=[FirstAttempt.user_id, FirstAttempt.question_id]))
    return result.rowcount == 1

def create_user_answer(db: Session, user_id: int, question_id: int, user_option: str,
                       is_correct: bool, time_spent: int) -> UserAnswer:
    answer = UserAnswer(user_id=user_id, question_id=question_id, user_option=user_option,
                        is_correct=is_correct, time_spent=time_spent, answered_at=utcnow())
    return _add(db, answer)

# ========== Progress ==========

def list_user_progress(db: Session, user_id: int) -> List[UserProgress]:
    return list(db.scalars(select(UserProgress).where(UserProgress.user_id == user_id).order_by(UserProgress.topic_id)))

def get_progress_by_user_and_topic(db: Session, user_id: int, topic_id: int) -> Optional[UserProgress]:
    stmt = (select(UserProgress).where(UserProgress.user_id == user_id, UserProgress.topic_id == topic_id)
            .execution_options(populate_existing=True))
    return db.scalar(stmt)

def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Atomic upserts are not supported on {dialect}")

def increment_progress(db: Session, user_id: int, topic_id: int, correct: int, time_spent: int) -> UserProgress:
    """Insert-or-increment the (user, topic) progress row in a single statement."""
    now = utcnow()
    stmt = _insert_for(db)(UserProgress).values(
        user_id=user_id, topic_id=topic_id, questions_attempted=1,
        questions_correct=correct, total_time_spent=time_spent, last_updated=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserProgress.user_id, UserProgress.topic_id],
        set_={
            "questions_attempted": UserProgress.questions_attempted + 1,
            "questions_correct": UserProgress.questions_correct + stmt.excluded.questions_correct,
            "total_time_spent": UserProgress.total_time_spent + stmt.excluded.total_time_spent,
            "last_updated": stmt.excluded.last_updated,
        },
    )
    db.execute(stmt)
    return get_progress_by_user_and_topic(db, user_id, topic_id)

# ========== Activity ==========

def create_user_activity(db: Session, user_id: int, activity_type: str, topic_id: Optional[int] = None,
                         details: Optional[Dict[str, Any]] = None) -> UserActivity:
    activity = UserActivity(user_id=user_id, activity_type=activity_type, topic_id=topic_id,
                            details=details, activity_date=utcnow())
    return _add(db, activity)

def list_user_activity(db: Session, user_id: int, limit: int = 10) -> List[UserActivity]:
    stmt = (select(UserActivity).where(UserActivity.user_id == user_id)
            .order_by(UserActivity.activity_date.desc(), UserActivity.id.desc()).limit(limit))
    return list(db.scalars(stmt))

def count_user_activity(db: Session, user_id: int, activity_type: str) -> int:
    stmt = select(func.count(UserActivity.id)).where(UserActivity.user_id == user_id, UserActivity.activity_type == activity_type)
    return db.scalar(stmt) or 0

# ========== Practice sets ==========

def list_practice_sets(db: Session, topic_id: Optional[int] = None) -> List[PracticeSet]:
    stmt = select(PracticeSet).where(PracticeSet.is_deleted.is_(False))
    if topic_id is not None:
        stmt = stmt.where(PracticeSet.topic_id == topic_id)
    return list(db.scalars(stmt.order_by(PracticeSet.id)))

def list_recommended_practice_sets(db: Session, user_id: int, limit: int = 3) -> List[PracticeSet]:
    """Recommended sets, untouched topics first, then the user's lowest-accuracy topics."""
    accuracy = UserProgress.questions_correct * 1.0 / func.nullif(UserProgress.questions_attempted, 0)
    stmt = (select(PracticeSet)
            .outerjoin(UserProgress, and_(UserProgress.topic_id == PracticeSet.topic_id, UserProgress.user_id == user_id))
            .where(PracticeSet.is_deleted.is_(False), PracticeSet.is_recommended.is_(True))
            .order_by(case((accuracy.is_(None), 0), else_=1), accuracy, PracticeSet.id)
            .limit(limit))
    return list(db.scalars(stmt))

def get_practice_set(db: Session, practice_set_id: int) -> Optional[PracticeSet]:
    return db.scalar(select(PracticeSet).where(PracticeSet.id == practice_set_id, PracticeSet.is_deleted.is_(False)))

def create_practice_set(db: Session, data: Dict[str, Any]) -> PracticeSet:
    return _add(db, PracticeSet(**data))

def update_practice_set(db: Session, practice_set: PracticeSet, data: Dict[str, Any]) -> PracticeSet:
    _apply(practice_set, data)
    db.flush()
    return practice_set

def delete_practice_set(db: Session, practice_set: PracticeSet) -> None:
    practice_set.soft_delete()
    db.flush()

# ========== Payments ==========

def create_payment(db: Session, data: Dict[str, Any]) -> Payment:
    return _add(db, Payment(**data))

def get_payment_by_order_id(db: Session, order_id: str) -> Optional[Payment]:
    return db.scalar(select(Payment).where(Payment.razorpay_order_id == order_id))

def list_user_payments(db: Session, user_id: int) -> List[Payment]:
    stmt = select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc(), Payment.id.desc())
    return list(db.scalars(stmt))

def capture_created_payment(db: Session, payment: Payment, payment_id: str, signature: str) -> bool:
    """Move a payment from `created` to `captured` in one statement; False if it was already processed."""
    stmt = (update(Payment).where(Payment.id == payment.id, Payment.status == "created")
            .values(status="captured", razorpay_payment_id=payment_id, razorpay_signature=signature, updated_at=utcnow())
            .execution_options(synchronize_session=False))
    claimed = db.execute(stmt).rowcount == 1
    db.refresh(payment)
    return claimed

# ========== Error logs ==========

def log_error(db: Session, error_message: str, error_stack: Optional[str] = None, user_id: Optional[int] = None,
              metadata: Optional[Dict[str, Any]] = None, route: Optional[str] = None,
              method: Optional[str] = None, timestamp=None) -> ErrorLog:
    entry = ErrorLog(error_message=error_message, error_stack=error_stack, user_id=user_id,
                     log_metadata=metadata, route=route, method=method, timestamp=timestamp or utcnow())
    return _add(db, entry)

def list_error_logs(db: Session, limit: int = 50) -> List[ErrorLog]:
    stmt = select(ErrorLog).order_by(ErrorLog.timestamp.desc(), ErrorLog.id.desc()).limit(limit)
    return list(db.scalars(stmt))
