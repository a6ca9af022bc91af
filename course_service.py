from typing import Dict, List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from errors import NotFoundError, PersistenceError, ValidationError
from extensions import db
from models import Course, CourseModule, Lesson, LessonProgress, Profile

COURSE_STATUSES = ("draft", "active", "completed")
DEFAULT_LESSON_MINUTES = 15


def _course_summary(c: Course) -> Dict:
    return {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "goal": c.goal,
        "status": c.status,
        "totalModules": c.total_modules,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
        "updatedAt": c.updated_at.isoformat() if c.updated_at else None,
    }


def get_owned_course(user_id: int, course_id: int) -> Course:
    course = Course.query.filter_by(id=course_id, user_id=user_id).first()
    if course is None:
        raise NotFoundError("Course not found")
    return course


def create_course_from_goal(user_id: int, goal: str, generator) -> Course:
    """Generate an outline for ``goal`` and store course, modules and lessons.

    Everything is written in one transaction, so a failed insert leaves no
    half-created course behind. Lesson content is not generated here; it is
    materialised when a lesson is first opened.
    """
    goal = (goal or "").strip()
    if not goal:
        raise ValidationError("Please describe what you want to learn")

    outline = generator.generate_course(goal)

    try:
        course = Course(
            user_id=user_id,
            title=outline.title,
            description=outline.description,
            goal=goal,
            status="active",
            total_modules=len(outline.modules),
        )
        db.session.add(course)
        for m_idx, m in enumerate(outline.modules):
            module = CourseModule(title=m.title, description=m.description, order_index=m_idx)
            course.modules.append(module)
            for l_idx, lesson in enumerate(m.lessons):
                module.lessons.append(Lesson(
                    title=lesson.title,
                    order_index=l_idx,
                    estimated_duration_minutes=lesson.estimatedDurationMinutes or DEFAULT_LESSON_MINUTES,
                    content_generated=False,
                ))
        profile = db.session.get(Profile, user_id)
        profile.courses_created = (profile.courses_created or 0) + 1
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Persisting course for user %s failed", user_id)
        raise PersistenceError("Failed to save the generated course", details=str(e.__class__.__name__))

    current_app.logger.info("Created course %s (%s modules) for user %s", course.id, course.total_modules, user_id)
    return course


def list_courses(user_id: int) -> List[Dict]:
    courses = Course.query.filter_by(user_id=user_id).order_by(Course.created_at.desc(), Course.id.desc()).all()
    return [_course_summary(c) for c in courses]


def course_stats(user_id: int) -> Dict:
    profile = db.session.get(Profile, user_id)
    courses = Course.query.filter_by(user_id=user_id).all()
    progress = LessonProgress.query.filter_by(user_id=user_id).all()
    limit = current_app.config.get("FREE_COURSE_LIMIT", 1)
    return {
        "totalCourses": len(courses),
        "activeCourses": sum(1 for c in courses if c.status == "active"),
        "completedCourses": sum(1 for c in courses if c.status == "completed"),
        "totalLessons": len(progress),
        "completedLessons": sum(1 for p in progress if p.completed),
        "isPremium": bool(profile.is_premium),
        "coursesCreated": profile.courses_created or 0,
        "courseLimit": None if profile.is_premium else limit,
    }


def course_detail(user_id: int, course_id: int) -> Dict:
    course = get_owned_course(user_id, course_id)
    lesson_ids = [l.id for m in course.modules for l in m.lessons]
    completed = set()
    if lesson_ids:
        rows = LessonProgress.query.filter(
            LessonProgress.user_id == user_id,
            LessonProgress.lesson_id.in_(lesson_ids),
            LessonProgress.completed.is_(True),
        ).all()
        completed = {r.lesson_id for r in rows}

    d = _course_summary(course)
    d["modules"] = [
        {
            "id": m.id,
            "title": m.title,
            "description": m.description,
            "orderIndex": m.order_index,
            "lessons": [
                {
                    "id": l.id,
                    "title": l.title,
                    "orderIndex": l.order_index,
                    "estimatedDurationMinutes": l.estimated_duration_minutes,
                    "contentGenerated": bool(l.content_generated),
                    "completed": l.id in completed,
                }
                for l in m.lessons
            ],
        }
        for m in course.modules
    ]
    d["completedLessons"] = len(completed)
    d["totalLessons"] = len(lesson_ids)
    return d


def update_course(user_id: int, course_id: int, payload: Dict) -> Course:
    course = get_owned_course(user_id, course_id)
    if "title" in payload:
        title = (payload.get("title") or "").strip()
        if not title:
            raise ValidationError("Title must not be empty")
        course.title = title[:200]
    if "status" in payload:
        status = payload.get("status")
        if status not in COURSE_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(COURSE_STATUSES)}")
        course.status = status
    db.session.commit()
    return course


def delete_course(user_id: int, course_id: int) -> None:
    course = get_owned_course(user_id, course_id)
    db.session.delete(course)
    db.session.commit()
    current_app.logger.info("Deleted course %s for user %s", course_id, user_id)
