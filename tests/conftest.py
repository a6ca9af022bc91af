"""
Shared pytest fixtures.

The app runs on TestingConfig with an in-memory SQLite database. The
language model and the billing API are replaced by mocks, so no test
talks to the network.
"""

import hashlib
import hmac
import json
from unittest.mock import Mock

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from billing_service import LemonSqueezyClient
from config import TestingConfig
from extensions import db
from generation_service import ContentGenerator
from models import Course, CourseModule, Lesson, Profile
from schemas import GeneratedCourse, LessonContent

WEBHOOK_SECRET = TestingConfig.LEMON_SQUEEZY_WEBHOOK_SECRET


@pytest.fixture
def sample_outline():
    """Course outline as the model would return it."""
    return GeneratedCourse.model_validate({
        "title": "Python Basics",
        "description": "Learn the fundamentals of Python",
        "modules": [
            {
                "title": "Getting Started",
                "description": "Setup and first steps",
                "lessons": [
                    {"title": "Installing Python", "estimatedDurationMinutes": 10},
                    {"title": "Your First Script", "estimatedDurationMinutes": 20},
                ],
            },
            {
                "title": "Data Types",
                "description": "Numbers, strings and lists",
                "lessons": [{"title": "Strings"}],
            },
        ],
    })


@pytest.fixture
def sample_lesson_content():
    """Three slides with one question after slide 2."""
    return LessonContent.model_validate({
        "slides": [
            {"slideNumber": 1, "title": "Intro", "content": "# Welcome\nPython is **fun**."},
            {"slideNumber": 2, "title": "Variables", "content": "- names\n- values"},
            {"slideNumber": 3, "title": "Wrap up", "content": "That is all."},
        ],
        "questions": [
            {
                "slideNumber": 2,
                "questionText": "What does a variable hold?",
                "optionA": "A value",
                "optionB": "A file",
                "optionC": "A thread",
                "optionD": "Nothing",
                "correctAnswer": "a",
                "explanation": "Variables name values.",
            }
        ],
    })


@pytest.fixture
def mock_generator(sample_outline, sample_lesson_content):
    generator = Mock(spec=ContentGenerator)
    generator.generate_course.return_value = sample_outline
    generator.generate_lesson_content.return_value = sample_lesson_content
    generator.tutor_reply.return_value = "A variable is a name bound to a value."
    return generator


@pytest.fixture
def mock_billing_client():
    client = Mock(spec=LemonSqueezyClient)
    client.create_checkout.return_value = "https://checkout.example.com/abc"
    client.get_customer_portal_url.return_value = "https://portal.example.com/sub"
    return client


@pytest.fixture
def app(mock_generator, mock_billing_client):
    app = create_app(
        TestingConfig,
        content_generator=mock_generator,
        billing_client_factory=lambda config: mock_billing_client,
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    profile = Profile(email="learner@example.com", password_hash=generate_password_hash("secret123"))
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def auth_client(client, user):
    resp = client.post("/auth/login", json={"email": "learner@example.com", "password": "secret123"})
    assert resp.status_code == 200
    return client


@pytest.fixture
def course(user):
    """A stored course with one module and one lesson whose content is not generated yet."""
    course = Course(user_id=user.id, title="Python Basics", description="Fundamentals", goal="learn python")
    module = CourseModule(title="Getting Started", description="First steps", order_index=0)
    module.lessons.append(Lesson(title="Variables", order_index=0))
    course.modules.append(module)
    db.session.add(course)
    db.session.commit()
    return course


@pytest.fixture
def lesson(course):
    return course.modules[0].lessons[0]


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def webhook_body(event_name, user_id=None, email=None, status="active", subscription_id="sub_1", customer_id=9001):
    meta = {"event_name": event_name}
    if user_id is not None:
        meta["custom_data"] = {"user_id": user_id}
    payload = {
        "meta": meta,
        "data": {
            "id": subscription_id,
            "type": "subscriptions",
            "attributes": {"status": status, "user_email": email, "customer_id": customer_id},
        },
    }
    return json.dumps(payload).encode("utf-8")
