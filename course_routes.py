from flask import Blueprint, jsonify, request

from course_service import (
    course_detail,
    course_stats,
    create_course_from_goal,
    delete_course,
    list_courses,
    update_course,
)
from decorators import course_quota_required, login_required
from generation_service import current_generator

courses = Blueprint('courses', __name__)


# ===== Generation endpoints (raw model output, nothing stored) =====

@courses.route('/generate-course', methods=['POST'])
@login_required
@course_quota_required
def generate_course(ctx):
    payload = request.get_json(silent=True) or {}
    outline = current_generator().generate_course(payload.get('goal'))
    return jsonify(outline.model_dump())


@courses.route('/generate-lesson-content', methods=['POST'])
@login_required
def generate_lesson_content(ctx):
    payload = request.get_json(silent=True) or {}
    content = current_generator().generate_lesson_content(
        payload.get('lessonTitle'),
        payload.get('courseContext') or '',
        payload.get('moduleContext') or '',
    )
    return jsonify(content.model_dump())


# ===== Courses =====

@courses.route('/courses', methods=['GET'])
@login_required
def api_list_courses(ctx):
    return jsonify(list_courses(ctx.user_id))


@courses.route('/courses', methods=['POST'])
@login_required
@course_quota_required
def api_create_course(ctx):
    payload = request.get_json(silent=True) or {}
    course = create_course_from_goal(ctx.user_id, payload.get('goal'), current_generator())
    return jsonify({"success": True, "course": course_detail(ctx.user_id, course.id)}), 201


@courses.route('/courses/stats', methods=['GET'])
@login_required
def api_course_stats(ctx):
    return jsonify(course_stats(ctx.user_id))


@courses.route('/courses/<int:course_id>', methods=['GET'])
@login_required
def api_course_detail(ctx, course_id):
    return jsonify(course_detail(ctx.user_id, course_id))


@courses.route('/courses/<int:course_id>', methods=['PATCH'])
@login_required
def api_update_course(ctx, course_id):
    payload = request.get_json(silent=True) or {}
    update_course(ctx.user_id, course_id, payload)
    return jsonify({"success": True, "course": course_detail(ctx.user_id, course_id)})


@courses.route('/courses/<int:course_id>', methods=['DELETE'])
@login_required
def api_delete_course(ctx, course_id):
    delete_course(ctx.user_id, course_id)
    return jsonify({"success": True})
