"""
Модели данных (dataclasses)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class CourseUser:
    """Участник курса с ролью"""
    id: int
    user_id: int
    course_id: int
    role: str  # STUDENT, TA, INSTRUCTOR, ADMIN
    is_active: bool


@dataclass
class Question:
    """Вопрос на странице модуля"""
    id: int
    page_id: int
    question_order: int
    text: Optional[str]


@dataclass
class ModuleGroup:
    """Группа студентов, работающих над модулем"""
    id: int
    module_id: int
    is_locked: bool


@dataclass
class GroupMember:
    """Членство в группе"""
    id: int
    course_user_id: int
    group_id: int
    module_id: int


@dataclass
class Answer:
    """Ответ группы на вопрос (submission_number = 0 — черновик)"""
    id: int
    question_id: int
    group_id: int
    value: Optional[str]
    submission_number: int
    submission_timestamp: Optional[datetime]
