from datetime import datetime
from typing import Dict, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import NotFoundError, PersistenceError, ValidationError
from extensions import db
from markdown_lite import parse_blocks, render_html
from models import Course, CourseModule, Lesson, LessonAnswer, LessonProgress, LessonQuestion, LessonSlide
from schemas import AnswerRecord, QuestionRecord, SlideRecord
from sequencer import ACTION_COMPLETE, LessonSequencer


def get_owned_lesson(user_id: int, lesson_id: int) -> Tuple[Lesson, CourseModule, Course]:
    row = (
        db.session.query(Lesson, CourseModule, Course)
        .join(CourseModule, Lesson.module_id == CourseModule.id)
        .join(Course, CourseModule.course_id == Course.id)
        .filter(Lesson.id == lesson_id, Course.user_id == user_id)
        .first()
    )
    if row is None:
        raise NotFoundError("Lesson not found")
    return row


def course_context(course: Course) -> str:
    return f"Course: {course.title} - {course.description or ''}"


def module_context(module: CourseModule) -> str:
    return f"Module: {module.title} - {module.description or ''}"


def materialize_lesson(lesson: Lesson, module: CourseModule, course: Course, generator) -> bool:
    """Generate and store slides/questions the first time a lesson is opened.

    Returns True when content was generated. Generation errors propagate
    before anything is written.
    """
    if lesson.content_generated:
        return False

    current_app.logger.info("Materialising content for lesson %s (%s)", lesson.id, lesson.title)
    content = generator.generate_lesson_content(lesson.title, course_context(course), module_context(module))

    try:
        seen = set()
        for s in content.slides:
            if s.slideNumber in seen:
                current_app.logger.warning("Lesson %s: dropping duplicate slide %s", lesson.id, s.slideNumber)
                continue
            seen.add(s.slideNumber)
            db.session.add(LessonSlide(lesson_id=lesson.id, slide_number=s.slideNumber, title=s.title, content=s.content))
        for q in content.questions:
            db.session.add(LessonQuestion(
                lesson_id=lesson.id,
                slide_number=q.slideNumber,
                question_text=q.questionText,
                option_a=q.optionA,
                option_b=q.optionB,
                option_c=q.optionC,
                option_d=q.optionD,
                correct_answer=q.correctAnswer,
                explanation=q.explanation,
            ))
        lesson.content_generated = True
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Persisting content for lesson %s failed", lesson.id)
        raise PersistenceError("Failed to save lesson content", details=str(e.__class__.__name__))

    current_app.logger.info(
        "Lesson %s: stored %s slides and %s questions", lesson.id, len(seen), len(content.questions)
    )
    return True


def save_answer(user_id: int, question: QuestionRecord, letter: str, is_correct: bool) -> AnswerRecord:
    """Upsert the learner's answer for ``question`` (one row per user and question)."""
    row = LessonAnswer.query.filter_by(user_id=user_id, question_id=question.id).first()
    if row is None:
        row = LessonAnswer(user_id=user_id, question_id=question.id)
        db.session.add(row)
    row.selected_answer = letter
    row.is_correct = is_correct
    row.answered_at = datetime.utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent submission inserted the row first; overwrite it
        db.session.rollback()
        row = LessonAnswer.query.filter_by(user_id=user_id, question_id=question.id).first()
        row.selected_answer = letter
        row.is_correct = is_correct
        row.answered_at = datetime.utcnow()
        db.session.commit()
    return AnswerRecord.model_validate(row)


def build_sequencer(user_id: int, lesson: Lesson, cursor: int = 0, just_submitted: Optional[int] = None) -> LessonSequencer:
    slides = (
        LessonSlide.query.filter_by(lesson_id=lesson.id)
        .order_by(LessonSlide.slide_number, LessonSlide.id)
        .all()
    )
    questions = (
        LessonQuestion.query.filter_by(lesson_id=lesson.id)
        .order_by(LessonQuestion.slide_number, LessonQuestion.id)
        .all()
    )
    answers = []
    if questions:
        answers = LessonAnswer.query.filter(
            LessonAnswer.user_id == user_id,
            LessonAnswer.question_id.in_([q.id for q in questions]),
        ).all()

    return LessonSequencer(
        slides=[SlideRecord.model_validate(s) for s in slides],
        questions=[QuestionRecord.model_validate(q) for q in questions],
        answers=[AnswerRecord.model_validate(a) for a in answers],
        cursor=cursor,
        save_answer=lambda q, letter, ok: save_answer(user_id, q, letter, ok),
        just_submitted=just_submitted,
    )


def complete_lesson(user_id: int, lesson: Lesson, seq: LessonSequencer) -> LessonProgress:
    if seq.next_action() != ACTION_COMPLETE:
        raise ValidationError("Answer every question and reach the last slide before completing the lesson")

    now = datetime.utcnow()
    progress = LessonProgress.query.filter_by(user_id=user_id, lesson_id=lesson.id).first()
    if progress is None:
        progress = LessonProgress(user_id=user_id, lesson_id=lesson.id)
        db.session.add(progress)
    progress.completed = True
    progress.completed_at = now
    progress.last_accessed_at = now
    db.session.commit()
    current_app.logger.info("User %s completed lesson %s", user_id, lesson.id)
    return progress


def _item_dict(seq: LessonSequencer) -> Optional[Dict]:
    item = seq.current()
    if item is None:
        return None
    rec = item.record
    if not item.is_question:
        return {
            "type": "slide",
            "id": rec.id,
            "slideNumber": rec.slide_number,
            "title": rec.title,
            "content": rec.content,
            "blocks": [b.to_dict() for b in parse_blocks(rec.content)],
            "html": str(render_html(rec.content)),
        }

    states = seq.option_states(rec)
    answer = seq.answers.get(rec.id)
    d = {
        "type": "question",
        "id": rec.id,
        "slideNumber": rec.slide_number,
        "questionText": rec.question_text,
        "options": [
            {"letter": letter, "text": rec.option_text(letter), "state": state}
            for letter, state in states.items()
        ],
        "answered": answer is not None,
        "justSubmitted": seq.just_submitted == rec.id,
    }
    if answer is not None:
        d["selectedAnswer"] = answer.selected_answer
        d["isCorrect"] = answer.is_correct
        d["correctAnswer"] = rec.correct_answer
        d["explanation"] = rec.explanation
    return d


def view_state(lesson: Lesson, seq: LessonSequencer, generated: bool = False) -> Dict:
    return {
        "lesson": {
            "id": lesson.id,
            "title": lesson.title,
            "estimatedDurationMinutes": lesson.estimated_duration_minutes,
        },
        "generated": generated,
        "index": seq.cursor,
        "total": len(seq),
        "progress": seq.progress_percent,
        "item": _item_dict(seq),
        "canAdvance": seq.can_advance,
        "canRetreat": seq.can_retreat,
        "canComplete": seq.can_complete,
        "action": seq.next_action(),
        "answeredCount": len(seq.answers),
        "questionCount": len(seq.questions),
    }
