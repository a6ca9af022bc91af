"""
Typed records for data crossing a boundary: language-model output,
billing webhook payloads and database rows handed to the sequencer.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

OPTION_LETTERS = ("a", "b", "c", "d")


def normalize_option(value) -> str:
    letter = str(value or "").strip().lower().rstrip(".)")
    if letter not in OPTION_LETTERS:
        raise ValueError(f"option must be one of a, b, c, d (got {value!r})")
    return letter


# ----- Generated course outline -----

class GeneratedLesson(BaseModel):
    title: str
    estimatedDurationMinutes: int = Field(15, ge=1)

    @field_validator("estimatedDurationMinutes", mode="before")
    @classmethod
    def _default_duration(cls, v):
        return v or 15


class GeneratedModule(BaseModel):
    title: str
    description: str = ""
    lessons: List[GeneratedLesson] = Field(default_factory=list)


class GeneratedCourse(BaseModel):
    title: str
    description: str = ""
    modules: List[GeneratedModule] = Field(min_length=1)


# ----- Generated lesson content -----

class GeneratedSlide(BaseModel):
    slideNumber: int = Field(ge=1)
    title: str
    content: str = ""


class GeneratedQuestion(BaseModel):
    slideNumber: int = Field(ge=0)
    questionText: str
    optionA: str
    optionB: str
    optionC: str
    optionD: str
    correctAnswer: str
    explanation: str = ""

    @field_validator("correctAnswer", mode="before")
    @classmethod
    def _letter(cls, v):
        return normalize_option(v)


class LessonContent(BaseModel):
    slides: List[GeneratedSlide] = Field(min_length=1)
    questions: List[GeneratedQuestion] = Field(default_factory=list)


# ----- Rows used by the sequencer -----

class SlideRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    slide_number: int
    title: str
    content: str = ""


class QuestionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    slide_number: int
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: str
    explanation: str = ""

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _letter(cls, v):
        return normalize_option(v)

    def option_text(self, letter: str) -> str:
        return getattr(self, f"option_{letter}")


class AnswerRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    question_id: int
    selected_answer: str
    is_correct: bool
    answered_at: Optional[datetime] = None


# ----- Billing webhook -----

class WebhookCustomData(BaseModel):
    user_id: Optional[str] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None or v == "":
            return None
        return str(v)


class WebhookMeta(BaseModel):
    event_name: str
    custom_data: Optional[WebhookCustomData] = None


class SubscriptionAttributes(BaseModel):
    status: str = ""
    user_email: Optional[str] = None
    customer_id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None

    @field_validator("customer_id", "product_id", "variant_id", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None or v == "" else str(v)


class SubscriptionData(BaseModel):
    id: Optional[str] = None
    type: Optional[str] = None
    attributes: SubscriptionAttributes = Field(default_factory=SubscriptionAttributes)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None or v == "" else str(v)


class WebhookEvent(BaseModel):
    meta: WebhookMeta
    data: SubscriptionData = Field(default_factory=SubscriptionData)

    @property
    def embedded_user_id(self) -> Optional[str]:
        return self.meta.custom_data.user_id if self.meta.custom_data else None
