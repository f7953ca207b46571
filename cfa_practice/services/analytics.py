"""
Per-user performance rollups over the progress table.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from cfa_practice.core.errors import NotFoundError
from cfa_practice.models.orm import UserActivity, UserProgress
from cfa_practice.services import storage

def ratio_half_up(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) with halves rounded up; 0 when denominator is 0."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)

def accuracy(correct: int, attempted: int) -> int:
    return ratio_half_up(100 * correct, attempted)

def topic_performance(topic_id: int, topic_name: str, progress: Optional[UserProgress]) -> Dict[str, Any]:
    attempted = progress.questions_attempted if progress else 0
    correct = progress.questions_correct if progress else 0
    total_time = progress.total_time_spent if progress else 0
    acc = accuracy(correct, attempted)
    return {
        "topicId": topic_id,
        "topicName": topic_name,
        "questionsAttempted": attempted,
        "questionsCorrect": correct,
        "accuracy": acc,
        "avgTimePerQuestion": ratio_half_up(total_time, attempted),
        "progress": acc,
    }

def enrich_activity(activities: List[UserActivity], topics: Dict[int, Any]) -> List[Dict[str, Any]]:
    rows = []
    for a in activities:
        topic = topics.get(a.topic_id) if a.topic_id else None
        rows.append({
            "id": a.id,
            "userId": a.user_id,
            "activityType": a.activity_type,
            "topicId": a.topic_id,
            "details": a.details,
            "activityDate": a.activity_date,
            "topic": {"id": topic.id, "name": topic.name} if topic else None,
        })
    return rows

def compute_analytics(db: Session, user_id: int, recent_limit: int = 5) -> Dict[str, Any]:
    user = storage.get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")

    topics = storage.list_topics(db)
    topic_map = {t.id: t for t in topics}
    progress_by_topic = {p.topic_id: p for p in storage.list_user_progress(db, user_id)}

    # Summary covers every progress row, including rows for topics since deleted
    total_attempted = sum(p.questions_attempted for p in progress_by_topic.values())
    total_correct = sum(p.questions_correct for p in progress_by_topic.values())
    total_time = sum(p.total_time_spent for p in progress_by_topic.values())

    return {
        "user": {"id": user.id, "username": user.username, "level": user.level, "streakDays": user.streak_days},
        "summary": {
            "totalQuestions": total_attempted,
            "totalAvailableQuestions": storage.count_available_questions(db),
            "accuracy": accuracy(total_correct, total_attempted),
            "totalTimeSpent": ratio_half_up(total_time, 3600),
            "avgTimePerQuestion": ratio_half_up(total_time, total_attempted),
            "change": 0,
        },
        "topicPerformance": [topic_performance(t.id, t.name, progress_by_topic.get(t.id)) for t in topics],
        "recentActivity": enrich_activity(storage.list_user_activity(db, user_id, recent_limit), topic_map),
    }
