"""
Доменные исключения
"""


class GroupAlterationException(Exception):
    """Операция нарушает правила членства в группе (уже в группе, не студент и т.п.)"""

    def __init__(self, course_user_id: int, module_id: int, reason: str = ""):
        self.course_user_id = course_user_id
        self.module_id = module_id
        self.reason = reason
        message = f"Course user: {course_user_id} cannot join group for module: {module_id}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
