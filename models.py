from extensions import db
from datetime import datetime


class Profile(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(150), nullable=True)

    # Entitlement fields, written only by the billing webhook
    is_premium = db.Column(db.Boolean, nullable=False, default=False)
    billing_customer_id = db.Column(db.String(64), nullable=True)
    billing_subscription_id = db.Column(db.String(64), nullable=True)

    # Lifetime counter; deleting a course does not give the slot back
    courses_created = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    courses = db.relationship('Course', backref='owner', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "isPremium": bool(self.is_premium),
            "coursesCreated": self.courses_created or 0,
            "hasSubscription": bool(self.billing_subscription_id),
        }


class Course(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profile.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    goal = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default='active')  # draft/active/completed
    total_modules = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    modules = db.relationship('CourseModule', backref='course', lazy=True, cascade="all, delete-orphan",
                              order_by="CourseModule.order_index")


class CourseModule(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)  # 0-based order
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    lessons = db.relationship('Lesson', backref='module', lazy=True, cascade="all, delete-orphan",
                              order_by="Lesson.order_index")


class Lesson(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    module_id = db.Column(db.Integer, db.ForeignKey('course_module.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    estimated_duration_minutes = db.Column(db.Integer, nullable=False, default=15)
    content_generated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    slides = db.relationship('LessonSlide', backref='lesson', lazy=True, cascade="all, delete-orphan")
    questions = db.relationship('LessonQuestion', backref='lesson', lazy=True, cascade="all, delete-orphan")
    progress_entries = db.relationship('LessonProgress', backref='lesson', lazy=True, cascade="all, delete-orphan")


class LessonSlide(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lesson.id'), nullable=False, index=True)
    slide_number = db.Column(db.Integer, nullable=False)  # 1-based
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('lesson_id', 'slide_number', name='uq_slide_lesson_number'),
    )


class LessonQuestion(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lesson.id'), nullable=False, index=True)
    slide_number = db.Column(db.Integer, nullable=False)  # shown right after this slide
    question_text = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=False)
    option_b = db.Column(db.Text, nullable=False)
    option_c = db.Column(db.Text, nullable=False)
    option_d = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(1), nullable=False)  # a/b/c/d
    explanation = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    answers = db.relationship('LessonAnswer', backref='question', lazy=True, cascade="all, delete-orphan")


class LessonAnswer(db.Model):
    __tablename__ = 'user_lesson_answer'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profile.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('lesson_question.id'), nullable=False, index=True)
    selected_answer = db.Column(db.String(1), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    answered_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'question_id', name='uq_user_question_answer'),
    )


class LessonProgress(db.Model):
    __tablename__ = 'user_progress'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profile.id'), nullable=False, index=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lesson.id'), nullable=False, index=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    last_accessed_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'lesson_id', name='uq_user_lesson_progress'),
    )


class ChatMessage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profile.id'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id', ondelete='SET NULL'), nullable=True, index=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lesson.id', ondelete='SET NULL'), nullable=True, index=True)
    role = db.Column(db.String(16), nullable=False)  # user/assistant
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
