"""
Lesson sequencing: slides and quiz questions merged into one linear walk.

A slide sits at position ``slide_number``; a question sits at
``slide_number + 0.5``, i.e. right after the slide it belongs to and
before the next one. Items are sorted by position with a stable sort, so
colliding positions keep their input order (slides before questions,
each in fetched order).

The sequencer owns the cursor and the answer state for one learner. It
does not touch the database: answers are handed to the ``save_answer``
callable given at construction time.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union

from errors import ValidationError
from schemas import OPTION_LETTERS, AnswerRecord, QuestionRecord, SlideRecord, normalize_option

logger = logging.getLogger(__name__)

SLIDE = "slide"
QUESTION = "question"

ACTION_COMPLETE = "complete"
ACTION_NEXT = "next"
ACTION_NONE = "none"

# option rendering states
OPTION_CORRECT = "correct"
OPTION_INCORRECT = "incorrect"
OPTION_NEUTRAL = "neutral"
OPTION_SELECTABLE = "selectable"


@dataclass(frozen=True)
class SequenceItem:
    kind: str
    position: float
    record: Union[SlideRecord, QuestionRecord]

    @property
    def is_question(self) -> bool:
        return self.kind == QUESTION


def build_sequence(slides: Iterable[SlideRecord], questions: Iterable[QuestionRecord]) -> List[SequenceItem]:
    items = [SequenceItem(SLIDE, float(s.slide_number), s) for s in slides]
    items += [SequenceItem(QUESTION, q.slide_number + 0.5, q) for q in questions]
    # list.sort is stable
    items.sort(key=lambda item: item.position)
    return items


class LessonSequencer:
    def __init__(
        self,
        slides: Iterable[SlideRecord],
        questions: Iterable[QuestionRecord],
        answers: Iterable[AnswerRecord] = (),
        cursor: int = 0,
        save_answer: Optional[Callable[[QuestionRecord, str, bool], AnswerRecord]] = None,
        just_submitted: Optional[int] = None,
    ):
        self.items = build_sequence(slides, questions)
        self.questions = [i.record for i in self.items if i.is_question]
        question_ids = {q.id for q in self.questions}
        self.answers: Dict[int, AnswerRecord] = {
            a.question_id: a for a in answers if a.question_id in question_ids
        }
        self._save_answer = save_answer
        self.cursor = self._clamp(cursor)
        # question id whose answer was submitted while the learner stayed on it
        self.just_submitted = just_submitted if self._current_question_id() == just_submitted else None

    def __len__(self):
        return len(self.items)

    def _clamp(self, index: int) -> int:
        if not self.items:
            return 0
        return max(0, min(int(index), len(self.items) - 1))

    def _current_question_id(self) -> Optional[int]:
        item = self.current()
        return item.record.id if item is not None and item.is_question else None

    # ---- state ----

    def current(self) -> Optional[SequenceItem]:
        if not self.items:
            return None
        return self.items[self.cursor]

    @property
    def is_last(self) -> bool:
        return bool(self.items) and self.cursor == len(self.items) - 1

    def is_answered(self, question_id: int) -> bool:
        return question_id in self.answers

    @property
    def all_answered(self) -> bool:
        return all(q.id in self.answers for q in self.questions)

    @property
    def blocked(self) -> bool:
        """True when the cursor sits on a question that has no answer yet."""
        item = self.current()
        return item is not None and item.is_question and not self.is_answered(item.record.id)

    @property
    def can_advance(self) -> bool:
        return bool(self.items) and not self.is_last and not self.blocked

    @property
    def can_retreat(self) -> bool:
        return self.cursor > 0

    @property
    def can_complete(self) -> bool:
        return self.is_last and self.all_answered

    def next_action(self) -> str:
        if self.can_complete:
            return ACTION_COMPLETE
        if self.is_last or not self.items:
            # last item with an open question: nothing to offer until it is answered
            return ACTION_NONE
        return ACTION_NEXT

    # ---- navigation ----

    def advance(self) -> bool:
        if self.blocked:
            return False
        target = self._clamp(self.cursor + 1)
        moved = target != self.cursor
        self.cursor = target
        self.just_submitted = None
        return moved

    def retreat(self) -> bool:
        target = self._clamp(self.cursor - 1)
        moved = target != self.cursor
        self.cursor = target
        self.just_submitted = None
        return moved

    def submit_answer(self, option_letter: str) -> AnswerRecord:
        item = self.current()
        if item is None or not item.is_question:
            raise ValidationError("The current item is not a question")
        question = item.record
        if self.is_answered(question.id):
            raise ValidationError("This question has already been answered")
        try:
            letter = normalize_option(option_letter)
        except ValueError as e:
            raise ValidationError(str(e))

        is_correct = letter == question.correct_answer
        if self._save_answer is not None:
            answer = self._save_answer(question, letter, is_correct)
        else:
            answer = AnswerRecord(question_id=question.id, selected_answer=letter, is_correct=is_correct)

        self.answers[question.id] = answer
        self.just_submitted = question.id
        logger.debug("Answered question %s with %s (correct=%s)", question.id, letter, is_correct)
        return answer

    # ---- rendering helpers ----

    def option_states(self, question: QuestionRecord) -> Dict[str, str]:
        answer = self.answers.get(question.id)
        if answer is None:
            return {letter: OPTION_SELECTABLE for letter in OPTION_LETTERS}
        states = {}
        for letter in OPTION_LETTERS:
            if letter == question.correct_answer:
                states[letter] = OPTION_CORRECT
            elif letter == answer.selected_answer:
                states[letter] = OPTION_INCORRECT
            else:
                states[letter] = OPTION_NEUTRAL
        return states

    @property
    def progress_percent(self) -> int:
        if not self.items:
            return 0
        return int(round((self.cursor + 1) * 100 / len(self.items)))
