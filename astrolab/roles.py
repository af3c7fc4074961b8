"""
Роли участников курса
"""

from enum import Enum


class CourseRole(str, Enum):
    """Роль пользователя внутри курса"""

    STUDENT = "STUDENT"          # Может создавать группы и вступать в них
    TA = "TA"                    # Ассистент преподавателя
    INSTRUCTOR = "INSTRUCTOR"    # Преподаватель (закрывает сессии групп)
    ADMIN = "ADMIN"
