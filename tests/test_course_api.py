import pytest

from errors import UpstreamServiceError
from extensions import db
from models import Course, CourseModule, Lesson, LessonProgress, Profile


@pytest.mark.api
class TestCreateCourse:

    def test_creates_course_from_outline(self, auth_client, user, mock_generator):
        resp = auth_client.post("/api/courses", json={"goal": "learn python"})

        assert resp.status_code == 201
        course = resp.get_json()["course"]
        assert course["title"] == "Python Basics"
        assert course["goal"] == "learn python"
        assert course["totalModules"] == 2
        assert [m["orderIndex"] for m in course["modules"]] == [0, 1]
        lessons = course["modules"][0]["lessons"]
        assert [l["title"] for l in lessons] == ["Installing Python", "Your First Script"]
        assert [l["estimatedDurationMinutes"] for l in lessons] == [10, 20]
        assert course["modules"][1]["lessons"][0]["estimatedDurationMinutes"] == 15
        assert not any(l["contentGenerated"] for m in course["modules"] for l in m["lessons"])
        mock_generator.generate_course.assert_called_once_with("learn python")
        assert db.session.get(Profile, user.id).courses_created == 1

    def test_free_quota(self, auth_client, mock_generator):
        assert auth_client.post("/api/courses", json={"goal": "learn python"}).status_code == 201
        resp = auth_client.post("/api/courses", json={"goal": "learn rust"})

        assert resp.status_code == 403
        assert "Upgrade to Premium" in resp.get_json()["error"]
        assert mock_generator.generate_course.call_count == 1

    def test_quota_survives_deletion(self, auth_client):
        course_id = auth_client.post("/api/courses", json={"goal": "learn python"}).get_json()["course"]["id"]
        assert auth_client.delete(f"/api/courses/{course_id}").status_code == 200
        assert auth_client.post("/api/courses", json={"goal": "learn rust"}).status_code == 403

    def test_premium_has_no_quota(self, auth_client, user):
        user.is_premium = True
        user.courses_created = 5
        db.session.commit()
        assert auth_client.post("/api/courses", json={"goal": "learn python"}).status_code == 201

    def test_generate_course_endpoint_enforces_quota(self, auth_client, user):
        user.courses_created = 1
        db.session.commit()
        assert auth_client.post("/api/generate-course", json={"goal": "x"}).status_code == 403

    def test_empty_goal(self, auth_client, mock_generator):
        resp = auth_client.post("/api/courses", json={"goal": "  "})
        assert resp.status_code == 400
        mock_generator.generate_course.assert_not_called()

    def test_generation_failure_stores_nothing(self, auth_client, user, mock_generator):
        mock_generator.generate_course.side_effect = UpstreamServiceError("OpenAI API error")
        resp = auth_client.post("/api/courses", json={"goal": "learn python"})

        assert resp.status_code == 502
        assert Course.query.count() == 0
        assert db.session.get(Profile, user.id).courses_created == 0

    def test_requires_login(self, client):
        assert client.post("/api/courses", json={"goal": "x"}).status_code == 401


@pytest.mark.api
class TestGenerationEndpoints:

    def test_generate_course_returns_outline(self, auth_client):
        resp = auth_client.post("/api/generate-course", json={"goal": "learn python"})
        assert resp.status_code == 200
        assert resp.get_json()["modules"][0]["lessons"][0]["title"] == "Installing Python"
        assert Course.query.count() == 0

    def test_generate_lesson_content(self, auth_client, mock_generator):
        resp = auth_client.post("/api/generate-lesson-content", json={
            "lessonTitle": "Variables", "courseContext": "Course: Python", "moduleContext": "Module: Basics",
        })
        assert resp.status_code == 200
        assert len(resp.get_json()["slides"]) == 3
        mock_generator.generate_lesson_content.assert_called_once_with(
            "Variables", "Course: Python", "Module: Basics"
        )


@pytest.mark.api
class TestManageCourses:

    def test_list_only_own_courses(self, auth_client, course):
        stranger = Profile(email="other@example.com", password_hash="x")
        db.session.add(stranger)
        db.session.flush()
        db.session.add(Course(user_id=stranger.id, title="Theirs", goal="x"))
        db.session.commit()

        resp = auth_client.get("/api/courses")
        assert [c["title"] for c in resp.get_json()] == ["Python Basics"]

    def test_other_users_course_not_found(self, auth_client, course):
        stranger = Profile(email="other@example.com", password_hash="x")
        db.session.add(stranger)
        db.session.flush()
        theirs = Course(user_id=stranger.id, title="Theirs", goal="x")
        db.session.add(theirs)
        db.session.commit()

        assert auth_client.get(f"/api/courses/{theirs.id}").status_code == 404
        assert auth_client.delete(f"/api/courses/{theirs.id}").status_code == 404

    def test_rename(self, auth_client, course):
        resp = auth_client.patch(f"/api/courses/{course.id}", json={"title": "  Python 101  "})
        assert resp.status_code == 200
        assert resp.get_json()["course"]["title"] == "Python 101"

    def test_rename_to_blank_rejected(self, auth_client, course):
        assert auth_client.patch(f"/api/courses/{course.id}", json={"title": ""}).status_code == 400

    def test_invalid_status_rejected(self, auth_client, course):
        assert auth_client.patch(f"/api/courses/{course.id}", json={"status": "archived"}).status_code == 400

    def test_delete_cascades(self, auth_client, course):
        course_id = course.id
        assert auth_client.delete(f"/api/courses/{course_id}").status_code == 200
        assert db.session.get(Course, course_id) is None
        assert CourseModule.query.count() == 0
        assert Lesson.query.count() == 0

    def test_stats(self, auth_client, user, course, lesson):
        db.session.add(LessonProgress(user_id=user.id, lesson_id=lesson.id, completed=True))
        db.session.commit()

        stats = auth_client.get("/api/courses/stats").get_json()
        assert stats["totalCourses"] == 1
        assert stats["activeCourses"] == 1
        assert stats["completedLessons"] == 1
        assert stats["isPremium"] is False
        assert stats["courseLimit"] == 1

    def test_detail_marks_completed_lessons(self, auth_client, user, course, lesson):
        db.session.add(LessonProgress(user_id=user.id, lesson_id=lesson.id, completed=True))
        db.session.commit()

        detail = auth_client.get(f"/api/courses/{course.id}").get_json()
        assert detail["modules"][0]["lessons"][0]["completed"] is True
        assert detail["completedLessons"] == 1
        assert detail["totalLessons"] == 1
