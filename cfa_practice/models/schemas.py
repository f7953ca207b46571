"""
Wire contracts shared by several routers. Fields are camelCase on the wire.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

OptionLabel = Literal["A", "B", "C", "D"]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class UserOut(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    level: str
    role: str
    is_premium: bool
    streak_days: int
    last_login_date: Optional[datetime] = None

class TopicOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None

class TopicRef(CamelModel):
    id: int
    name: str

class TopicCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = "book"

class TopicUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = None

class ChapterOut(CamelModel):
    id: int
    topic_id: int
    name: str
    description: Optional[str] = None
    order: int

class ChapterWithTopic(ChapterOut):
    topic: Optional[TopicOut] = None

class ChapterCreate(CamelModel):
    topic_id: int
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    order: int = 0

class ChapterUpdate(CamelModel):
    topic_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    order: Optional[int] = None

class QuestionOut(CamelModel):
    id: int
    topic_id: int
    chapter_id: Optional[int] = None
    subtopic: Optional[str] = None
    question_text: str
    context: Optional[str] = None
    option_a: str
    option_b: str
    option_c: str
    option_d: Optional[str] = None
    correct_option: OptionLabel
    explanation: str
    difficulty: int

class QuestionCreate(CamelModel):
    topic_id: int
    chapter_id: Optional[int] = None
    subtopic: Optional[str] = None
    question_text: str = Field(min_length=1)
    context: Optional[str] = None
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    option_d: Optional[str] = None
    correct_option: OptionLabel
    explanation: str
    difficulty: int = Field(default=1, ge=1, le=3)

    @model_validator(mode="after")
    def check_correct_option(self):
        if self.correct_option == "D" and not self.option_d:
            raise ValueError("correctOption D requires optionD")
        return self

class QuestionUpdate(CamelModel):
    topic_id: Optional[int] = None
    chapter_id: Optional[int] = None
    subtopic: Optional[str] = None
    question_text: Optional[str] = Field(default=None, min_length=1)
    context: Optional[str] = None
    option_a: Optional[str] = Field(default=None, min_length=1)
    option_b: Optional[str] = Field(default=None, min_length=1)
    option_c: Optional[str] = Field(default=None, min_length=1)
    option_d: Optional[str] = None
    correct_option: Optional[OptionLabel] = None
    explanation: Optional[str] = None
    difficulty: Optional[int] = Field(default=None, ge=1, le=3)

class PracticeSetOut(CamelModel):
    id: int
    name: str
    topic_id: int
    subtopic: Optional[str] = None
    question_count: int
    estimated_time: int
    difficulty: int
    is_recommended: bool
    status: str

class PracticeSetWithTopic(PracticeSetOut):
    topic: Optional[TopicOut] = None

PracticeSetStatus = Literal["new", "needs_review", "completed"]

class PracticeSetCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    topic_id: int
    subtopic: Optional[str] = None
    question_count: int = Field(ge=1)
    estimated_time: int = Field(ge=1)
    difficulty: int = Field(default=1, ge=1, le=3)
    is_recommended: bool = False
    status: PracticeSetStatus = "new"

class PracticeSetUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    topic_id: Optional[int] = None
    subtopic: Optional[str] = None
    question_count: Optional[int] = Field(default=None, ge=1)
    estimated_time: Optional[int] = Field(default=None, ge=1)
    difficulty: Optional[int] = Field(default=None, ge=1, le=3)
    is_recommended: Optional[bool] = None
    status: Optional[PracticeSetStatus] = None

class AnswerOut(CamelModel):
    id: int
    user_id: int
    question_id: int
    user_option: str
    is_correct: bool
    time_spent: int
    answered_at: datetime

class ProgressOut(CamelModel):
    id: Optional[int] = None
    user_id: int
    topic_id: int
    questions_attempted: int = 0
    questions_correct: int = 0
    total_time_spent: int = 0
    last_updated: Optional[datetime] = None

class ProgressWithTopic(ProgressOut):
    topic: Optional[TopicOut] = None

class ActivityOut(CamelModel):
    id: int
    user_id: int
    activity_type: str
    topic_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    activity_date: datetime
    topic: Optional[TopicRef] = None

class ErrorLogOut(CamelModel):
    id: int
    error_message: str
    error_stack: Optional[str] = None
    user_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="log_metadata")
    route: Optional[str] = None
    method: Optional[str] = None
    timestamp: datetime

def dump_update(payload: BaseModel, nullable: tuple = ()) -> Dict[str, Any]:
    """Fields the caller actually sent, keyed by attribute name. None only clears `nullable` fields."""
    data = payload.model_dump(exclude_unset=True)
    return {k: v for k, v in data.items() if v is not None or k in nullable}

def with_topics(rows: List[Any], model: type[CamelModel], topics: Dict[int, Any]) -> List[CamelModel]:
    return [model.model_validate(r).model_copy(update={"topic": TopicOut.model_validate(topics[r.topic_id]) if r.topic_id in topics else None}) for r in rows]
