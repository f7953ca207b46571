"""
Answer submission: record every attempt, count only the first one per question.
"""
import logging
from sqlalchemy.orm import Session

from cfa_practice.core.errors import InvalidInputError, NotFoundError
from cfa_practice.models.orm import UserAnswer
from cfa_practice.services import storage

logger = logging.getLogger(__name__)

QUESTION_ANSWERED = "question_answered"

def submit_answer(db: Session, user_id: int, question_id: int, chosen_option: str, time_spent: int) -> UserAnswer:
    """
    Persist a submitted answer and keep per-topic progress in step with it.

    Correctness is always derived from the stored answer key. Progress and the
    activity log move only on the user's first answer to this question; repeat
    submissions are stored but change nothing else. Everything commits in one
    transaction.

    Raises:
        NotFoundError: the question does not exist or was deleted.
        InvalidInputError: negative time, or an option the question does not offer.
    """
    if time_spent < 0:
        raise InvalidInputError("timeSpent must be a non-negative integer")
    question = storage.get_question(db, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    chosen_option = chosen_option.upper()
    if chosen_option not in question.option_labels():
        raise InvalidInputError(f"Option {chosen_option} is not available for this question")

    try:
        first_attempt = storage.claim_first_attempt(db, user_id, question_id)
        is_correct = chosen_option == question.correct_option
        answer = storage.create_user_answer(db, user_id, question_id, chosen_option, is_correct, time_spent)

        if first_attempt:
            topic = storage.get_topic(db, question.topic_id)
            if topic is None:
                logger.warning(f"Question {question_id} references missing topic {question.topic_id}; progress not updated")
            else:
                progress = storage.increment_progress(db, user_id, topic.id, 1 if is_correct else 0, time_spent)
                storage.create_user_activity(db, user_id, QUESTION_ANSWERED, topic_id=topic.id, details={
                    "questionId": question_id,
                    "isCorrect": is_correct,
                    "timeSpent": time_spent,
                    "isFirstAttempt": True,
                })
                logger.info(f"User {user_id} topic {topic.id} progress now {progress.questions_attempted}/{progress.questions_correct}")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(answer)
    return answer
