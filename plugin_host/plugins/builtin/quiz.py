"""
Quiz activity module.

Graded module owning the quiz and quiz_attempts tables. Attempts are started
and finished through the ajax actions; the grade book column is created by
the module tracker from get_grading_info().
"""

import html
from typing import Any

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import CONTEXT_MODULE, RISK_SPAM, RISK_XSS
from plugin_host.database import Base
from plugin_host.plugins.base import CapabilityDefinition, ModuleBase, ModuleFeatures
from plugin_host.utils.clock import utcnow


class Quiz(Base):
    __tablename__ = "quiz"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    intro = Column(Text, default="", nullable=False)
    time_open = Column(DateTime, nullable=True)
    time_close = Column(DateTime, nullable=True)
    time_limit = Column(Integer, default=0, nullable=False)  # seconds, 0 = unlimited
    attempts = Column(Integer, default=0, nullable=False)  # 0 = unlimited
    grade_method = Column(Integer, default=1, nullable=False)  # 1 = highest grade
    grade = Column(Float, default=100.0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quiz.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False)
    attempt = Column(Integer, nullable=False)
    state = Column(String(16), default="inprogress", nullable=False)  # inprogress | finished
    sum_grades = Column(Float, nullable=True)
    time_start = Column(DateTime, default=utcnow, nullable=False)
    time_finish = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_quiz_attempts_quiz_user", "quiz_id", "user_id", "attempt", unique=True),)


_UPDATABLE = ("name", "intro", "time_open", "time_close", "time_limit", "attempts", "grade_method", "grade")


class QuizModule(ModuleBase):
    icon = "quiz"
    description = "Quizzes with a limited number of timed attempts, graded automatically"

    def get_supported_features(self) -> ModuleFeatures:
        return ModuleFeatures(grade=True, completion=True, groups=True, backup=True, intro=True, idnumber=True)

    def get_capabilities(self) -> list[CapabilityDefinition]:
        return [
            CapabilityDefinition("mod/quiz:view", captype="read", context_level=CONTEXT_MODULE),
            CapabilityDefinition("mod/quiz:attempt", context_level=CONTEXT_MODULE, risk_bitmask=RISK_SPAM),
            CapabilityDefinition("mod/quiz:manage", context_level=CONTEXT_MODULE, risk_bitmask=RISK_XSS),
            CapabilityDefinition("mod/quiz:grade", context_level=CONTEXT_MODULE, risk_bitmask=RISK_SPAM | RISK_XSS),
        ]

    # ── Instances ─────────────────────────────────────────────────────────────

    async def add_instance(self, db: AsyncSession, data: dict[str, Any]) -> int:
        quiz = Quiz(
            course_id=data["course_id"],
            name=data["name"],
            intro=data.get("intro", ""),
            time_open=data.get("time_open"),
            time_close=data.get("time_close"),
            time_limit=data.get("time_limit", 0),
            attempts=data.get("attempts", 0),
            grade_method=data.get("grade_method", 1),
            grade=data.get("grade", 100.0),
        )
        db.add(quiz)
        await db.flush()
        return quiz.id

    async def update_instance(self, db: AsyncSession, instance_id: int, data: dict[str, Any]) -> None:
        quiz = await db.get(Quiz, instance_id)
        if quiz is None:
            return
        for field_name in _UPDATABLE:
            if field_name in data:
                setattr(quiz, field_name, data[field_name])
        quiz.updated_at = utcnow()
        await db.flush()

    async def delete_instance(self, db: AsyncSession, instance_id: int) -> None:
        await db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id == instance_id))
        await db.execute(delete(Quiz).where(Quiz.id == instance_id))

    async def get_instance(self, db: AsyncSession, instance_id: int) -> dict[str, Any] | None:
        quiz = await db.get(Quiz, instance_id)
        if quiz is None:
            return None
        return {
            "id": quiz.id,
            "course_id": quiz.course_id,
            "name": quiz.name,
            "intro": quiz.intro,
            "time_open": quiz.time_open,
            "time_close": quiz.time_close,
            "time_limit": quiz.time_limit,
            "attempts": quiz.attempts,
            "grade": quiz.grade,
        }

    async def get_grading_info(self, db: AsyncSession, instance_id: int) -> dict[str, Any]:
        quiz = await db.get(Quiz, instance_id)
        grade = quiz.grade if quiz is not None else 100.0
        return {
            "item_name": quiz.name if quiz is not None else self.name,
            "grade_type": 1,
            "grade_max": grade,
            "grade_min": 0.0,
            "grade_pass": grade * 0.6,
        }

    # ── Views ─────────────────────────────────────────────────────────────────

    async def _user_attempts(self, db: AsyncSession, quiz_id: int, user_id: int) -> list[QuizAttempt]:
        result = await db.execute(
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.attempt.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _can_attempt(quiz: Quiz, attempts: list[QuizAttempt]) -> bool:
        now = utcnow()
        if quiz.time_open and now < quiz.time_open:
            return False
        if quiz.time_close and now > quiz.time_close:
            return False
        return not quiz.attempts or len(attempts) < quiz.attempts

    async def get_view(self, db: AsyncSession, instance_id: int, user_id: int) -> str:
        quiz = await db.get(Quiz, instance_id)
        if quiz is None:
            return '<div class="alert alert-danger">Quiz not found</div>'

        attempts = await self._user_attempts(db, instance_id, user_id)
        parts = ['<div class="quiz-view">', f"<h2>{html.escape(quiz.name)}</h2>"]
        if quiz.intro:
            parts.append(f'<div class="quiz-intro">{quiz.intro}</div>')
        if quiz.attempts:
            parts.append(f"<p><strong>Attempts allowed:</strong> {quiz.attempts}</p>")
        if self._can_attempt(quiz, attempts):
            parts.append(f'<div class="quiz-attempt"><button data-quiz-id="{quiz.id}">Start Quiz</button></div>')
        else:
            parts.append('<div class="quiz-completed"><p>No more attempts allowed or quiz is closed.</p></div>')
        parts.append("</div>")
        return "".join(parts)

    # ── Ajax ──────────────────────────────────────────────────────────────────

    async def handle_ajax(self, db: AsyncSession, action: str, params: dict[str, Any]) -> dict[str, Any]:
        if action == "get_info":
            info = await self.get_instance(db, int(params.get("quiz_id", 0)))
            if info is None:
                return {"success": False, "error": "Quiz not found"}
            return {"success": True, "quiz": info}
        if action == "start_attempt":
            return await self._start_attempt(db, params)
        if action == "finish_attempt":
            return await self._finish_attempt(db, params)
        return {"success": False, "error": "Unknown action"}

    async def _start_attempt(self, db: AsyncSession, params: dict[str, Any]) -> dict[str, Any]:
        quiz = await db.get(Quiz, int(params.get("quiz_id", 0)))
        if quiz is None:
            return {"success": False, "error": "Quiz not found"}
        user_id = int(params["user_id"])
        attempts = await self._user_attempts(db, quiz.id, user_id)
        if not self._can_attempt(quiz, attempts):
            return {"success": False, "error": "Cannot start new attempt"}

        result = await db.execute(
            select(func.coalesce(func.max(QuizAttempt.attempt), 0)).where(
                QuizAttempt.quiz_id == quiz.id, QuizAttempt.user_id == user_id
            )
        )
        attempt = QuizAttempt(quiz_id=quiz.id, user_id=user_id, attempt=result.scalar_one() + 1)
        db.add(attempt)
        await db.flush()
        return {"success": True, "attempt_id": attempt.id, "attempt": attempt.attempt}

    async def _finish_attempt(self, db: AsyncSession, params: dict[str, Any]) -> dict[str, Any]:
        attempt = await db.get(QuizAttempt, int(params.get("attempt_id", 0)))
        if attempt is None or attempt.state != "inprogress":
            return {"success": False, "error": "Attempt not found"}
        attempt.state = "finished"
        attempt.sum_grades = params.get("sum_grades")
        attempt.time_finish = utcnow()
        await db.flush()
        return {"success": True, "finished": True}
