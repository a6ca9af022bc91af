"""
Content generation through the OpenAI chat completions API.

Three calls: the course outline for a learning goal, the slides and quiz
questions for one lesson, and free-form tutor replies.
"""

import json
import logging
import re
from typing import Dict, List, Optional

import openai
from flask import current_app
from openai import OpenAI
from pydantic import ValidationError as SchemaError

from errors import ConfigurationError, UpstreamServiceError, ValidationError
from schemas import GeneratedCourse, LessonContent

logger = logging.getLogger(__name__)

COURSE_SYSTEM_PROMPT = "You are an expert curriculum designer. Always return valid JSON only, no other text."
LESSON_SYSTEM_PROMPT = "You are an expert educational content designer. Always return valid JSON only, no other text."

TUTOR_SYSTEM_PROMPT = """You are an expert AI tutor for the Lema learning platform. Your role is to:
- Answer student questions clearly and thoroughly
- Provide explanations at an appropriate level for the learner
- Give examples to illustrate concepts
- Encourage learning and critical thinking
- Be patient and supportive"""

COURSE_PROMPT = """You are an expert curriculum designer. Create a comprehensive learning course structure for the following goal: "{goal}"

Generate a structured course with:
- A clear title and description
- 4-6 modules that progressively build knowledge
- Each module should have 3-5 lessons
- IMPORTANT: Only provide lesson titles and estimated duration - NO detailed content yet
- Content will be generated later when user opens each lesson

Return ONLY a valid JSON object with this exact structure:
{{
  "title": "Course title",
  "description": "Course description",
  "modules": [
    {{
      "title": "Module title",
      "description": "Module description",
      "lessons": [
        {{
          "title": "Lesson title",
          "estimatedDurationMinutes": 15
        }}
      ]
    }}
  ]
}}"""

LESSON_PROMPT = """You are an expert educational content designer. Create detailed lesson content for:

Lesson: "{lesson_title}"
Course Context: {course_context}
Module Context: {module_context}

Create a comprehensive lesson with:
- 5-8 slides that teach the topic progressively
- Each slide should be focused and not too long (2-4 paragraphs max)
- After every 2-3 slides, include a quiz question to test understanding
- Each quiz question should have 4 multiple choice options (a, b, c, d)
- Provide clear explanations for correct answers

Return ONLY a valid JSON object with this exact structure:
{{
  "slides": [
    {{
      "slideNumber": 1,
      "title": "Slide title",
      "content": "Slide content in markdown format with examples and explanations"
    }}
  ],
  "questions": [
    {{
      "slideNumber": 2,
      "questionText": "Question text",
      "optionA": "First option",
      "optionB": "Second option",
      "optionC": "Third option",
      "optionD": "Fourth option",
      "correctAnswer": "a",
      "explanation": "Explanation of why this is correct"
    }}
  ]
}}"""

TUTOR_ROLES = ("user", "assistant")


def _coerce_jsonish(s: str) -> str:
    s = (s or "").strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?", "", s, flags=re.IGNORECASE).strip()
        s = re.sub(r"```$", "", s).strip()
    return s


def _parse_json(content: str) -> dict:
    cleaned = _coerce_jsonish(content)
    try:
        return json.loads(cleaned)
    except ValueError:
        # Last resort: first {...} block
        m = re.search(r"\{[\s\S]*\}", cleaned)
        if m:
            try:
                return json.loads(m.group(0))
            except ValueError:
                pass
    raise UpstreamServiceError("Model did not return valid JSON")


class ContentGenerator:
    """Wraps the OpenAI client with the prompts used by the platform."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", client=None, temperature: float = 0.7):
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._client = client

    @classmethod
    def from_config(cls, config) -> "ContentGenerator":
        return cls(api_key=config.get("OPENAI_API_KEY"), model=config.get("OPENAI_MODEL") or "gpt-4o-mini")

    @property
    def client(self):
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("OpenAI API key not configured on server")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _chat(self, messages: List[Dict[str, str]], json_mode: bool = False, max_tokens: Optional[int] = None) -> str:
        kwargs = {"model": self.model, "messages": messages, "temperature": self.temperature}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        try:
            resp = self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error("OpenAI API error %s: %s", e.status_code, e.message)
            raise UpstreamServiceError("OpenAI API error", status_code=e.status_code, details=e.message)
        except openai.APIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise UpstreamServiceError("OpenAI API error", details=str(e))
        content = resp.choices[0].message.content
        if not content:
            raise UpstreamServiceError("OpenAI returned an empty response")
        return content

    def generate_course(self, goal: str) -> GeneratedCourse:
        goal = (goal or "").strip()
        if not goal:
            raise ValidationError("Missing learning goal")
        logger.info("Generating course outline for goal: %s", goal[:120])
        content = self._chat(
            [
                {"role": "system", "content": COURSE_SYSTEM_PROMPT},
                {"role": "user", "content": COURSE_PROMPT.format(goal=goal)},
            ],
            json_mode=True,
        )
        try:
            return GeneratedCourse.model_validate(_parse_json(content))
        except SchemaError as e:
            logger.warning("Course outline failed validation: %s", e)
            raise UpstreamServiceError("Invalid course structure returned by the model", details=e.errors(include_url=False, include_context=False))

    def generate_lesson_content(self, lesson_title: str, course_context: str = "", module_context: str = "") -> LessonContent:
        lesson_title = (lesson_title or "").strip()
        if not lesson_title:
            raise ValidationError("Missing lesson title")
        logger.info("Generating lesson content for: %s", lesson_title[:120])
        content = self._chat(
            [
                {"role": "system", "content": LESSON_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": LESSON_PROMPT.format(
                        lesson_title=lesson_title,
                        course_context=course_context,
                        module_context=module_context,
                    ),
                },
            ],
            json_mode=True,
        )
        try:
            return LessonContent.model_validate(_parse_json(content))
        except SchemaError as e:
            logger.warning("Lesson content failed validation: %s", e)
            raise UpstreamServiceError("Invalid lesson content returned by the model", details=e.errors(include_url=False, include_context=False))

    def tutor_reply(self, messages: List[Dict[str, str]], context: Optional[str] = None) -> str:
        if not messages:
            raise ValidationError("Missing required fields: messages")
        if not all(isinstance(m, dict) for m in messages):
            raise ValidationError("Each message must be an object with role and content")
        cleaned = []
        for m in messages:
            role = m.get("role")
            text = (m.get("content") or "").strip()
            if role not in TUTOR_ROLES or not text:
                raise ValidationError("Each message needs a role (user/assistant) and content")
            cleaned.append({"role": role, "content": text})
        system = TUTOR_SYSTEM_PROMPT
        if context:
            system += f"\n\nCurrent learning context:\n{context}"
        return self._chat([{"role": "system", "content": system}] + cleaned, max_tokens=1000)


def current_generator() -> ContentGenerator:
    return current_app.extensions["content_generator"]
