from flask import Blueprint, jsonify, request, session, current_app

from decorators import login_required
from errors import NotFoundError, ValidationError
from extensions import db
from generation_service import current_generator
from lesson_service import (
    build_sequencer,
    complete_lesson,
    course_context,
    get_owned_lesson,
    materialize_lesson,
    module_context,
    view_state,
)
from models import ChatMessage, Course

lessons = Blueprint('lessons', __name__)

# Per-lesson cursors kept in the cookie session, oldest first:
# [{"lesson": id, "cursor": int, "submitted": question_id}, ...]
_STATE_KEY = "lesson_state"
# The cookie is size-limited; only the most recently used lessons keep their cursor.
MAX_TRACKED_LESSONS = 20


def _load_state(lesson_id):
    entries = session.get(_STATE_KEY)
    if not isinstance(entries, list):
        return 0, None
    state = next((e for e in entries if e.get("lesson") == lesson_id), None) or {}
    return int(state.get("cursor") or 0), state.get("submitted")


def _store_state(lesson_id, seq):
    entries = session.get(_STATE_KEY)
    if not isinstance(entries, list):
        entries = []
    entries = [e for e in entries if e.get("lesson") != lesson_id]
    entries.append({"lesson": lesson_id, "cursor": seq.cursor, "submitted": seq.just_submitted})
    session[_STATE_KEY] = entries[-MAX_TRACKED_LESSONS:]


def _open(ctx, lesson_id):
    lesson, _module, _course = get_owned_lesson(ctx.user_id, lesson_id)
    cursor, submitted = _load_state(lesson_id)
    return lesson, build_sequencer(ctx.user_id, lesson, cursor=cursor, just_submitted=submitted)


@lessons.route('/lessons/<int:lesson_id>', methods=['GET'])
@login_required
def api_lesson(ctx, lesson_id):
    lesson, module, course = get_owned_lesson(ctx.user_id, lesson_id)
    generated = materialize_lesson(lesson, module, course, current_generator())
    cursor, submitted = _load_state(lesson_id)
    seq = build_sequencer(ctx.user_id, lesson, cursor=cursor, just_submitted=submitted)
    _store_state(lesson_id, seq)
    d = view_state(lesson, seq, generated=generated)
    d["courseId"] = course.id
    d["moduleTitle"] = module.title
    return jsonify(d)


@lessons.route('/lessons/<int:lesson_id>/next', methods=['POST'])
@login_required
def api_lesson_next(ctx, lesson_id):
    lesson, seq = _open(ctx, lesson_id)
    moved = seq.advance()
    _store_state(lesson_id, seq)
    d = view_state(lesson, seq)
    d["moved"] = moved
    return jsonify(d)


@lessons.route('/lessons/<int:lesson_id>/previous', methods=['POST'])
@login_required
def api_lesson_previous(ctx, lesson_id):
    lesson, seq = _open(ctx, lesson_id)
    moved = seq.retreat()
    _store_state(lesson_id, seq)
    d = view_state(lesson, seq)
    d["moved"] = moved
    return jsonify(d)


@lessons.route('/lessons/<int:lesson_id>/answer', methods=['POST'])
@login_required
def api_lesson_answer(ctx, lesson_id):
    payload = request.get_json(silent=True) or {}
    if not payload.get('answer'):
        raise ValidationError("Missing required field: answer")
    lesson, seq = _open(ctx, lesson_id)
    seq.submit_answer(payload['answer'])
    _store_state(lesson_id, seq)
    return jsonify(view_state(lesson, seq))


@lessons.route('/lessons/<int:lesson_id>/complete', methods=['POST'])
@login_required
def api_lesson_complete(ctx, lesson_id):
    lesson, seq = _open(ctx, lesson_id)
    progress = complete_lesson(ctx.user_id, lesson, seq)
    return jsonify({
        "success": True,
        "lessonId": lesson.id,
        "completedAt": progress.completed_at.isoformat(),
    })


# ===== AI tutor =====

def _tutor_context(ctx, course_id, lesson_id):
    if lesson_id:
        lesson, module, course = get_owned_lesson(ctx.user_id, lesson_id)
        return course.id, lesson.id, f"{course_context(course)}\n{module_context(module)}\nLesson: {lesson.title}"
    if course_id:
        course = Course.query.filter_by(id=course_id, user_id=ctx.user_id).first()
        if course is None:
            raise NotFoundError("Course not found")
        return course.id, None, course_context(course)
    return None, None, None


@lessons.route('/tutor', methods=['POST'])
@login_required
def api_tutor(ctx):
    payload = request.get_json(silent=True) or {}
    messages = payload.get('messages')
    if not messages or not isinstance(messages, list):
        raise ValidationError("Missing required fields: messages")
    if not all(isinstance(m, dict) for m in messages):
        raise ValidationError("Each message must be an object with role and content")

    course_id, lesson_id, context = _tutor_context(ctx, payload.get('courseId'), payload.get('lessonId'))
    extra = (payload.get('context') or '').strip()
    if extra:
        context = f"{context}\n{extra}" if context else extra

    reply = current_generator().tutor_reply(messages, context)

    last_user = next((m for m in reversed(messages) if m.get('role') == 'user'), None)
    if last_user:
        db.session.add(ChatMessage(user_id=ctx.user_id, course_id=course_id, lesson_id=lesson_id,
                                   role='user', content=last_user.get('content') or ''))
    db.session.add(ChatMessage(user_id=ctx.user_id, course_id=course_id, lesson_id=lesson_id,
                               role='assistant', content=reply))
    db.session.commit()
    current_app.logger.info("Tutor reply for user %s (course=%s, lesson=%s)", ctx.user_id, course_id, lesson_id)
    return jsonify({"reply": reply})


@lessons.route('/tutor/history', methods=['GET'])
@login_required
def api_tutor_history(ctx):
    q = ChatMessage.query.filter_by(user_id=ctx.user_id)
    course_id = request.args.get('courseId', type=int)
    lesson_id = request.args.get('lessonId', type=int)
    if course_id:
        q = q.filter_by(course_id=course_id)
    if lesson_id:
        q = q.filter_by(lesson_id=lesson_id)
    rows = q.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).limit(200).all()
    return jsonify([
        {"role": m.role, "content": m.content, "createdAt": m.created_at.isoformat() if m.created_at else None}
        for m in rows
    ])
