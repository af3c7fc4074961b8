"""
Реестр отметок участников групп (check-in)

Хранится в памяти процесса: group_id -> {course_user_id: время отметки}.
Отметка живёт CHECKIN_TIMEOUT секунд, как сессия в исходном приложении.
"""

import logging
import time
from typing import Dict, List, Optional

from astrolab.config import config

logger = logging.getLogger(__name__)

_checkins: Dict[int, Dict[int, float]] = {}


def record_checkin(group_id: int, course_user_id: int, now: Optional[float] = None):
    """Отметить участника в группе (повторная отметка продлевает срок)"""
    now = time.monotonic() if now is None else now
    _checkins.setdefault(group_id, {})[course_user_id] = now
    logger.debug(f"Check-in: участник {course_user_id} в группе {group_id}")


def get_checked_in(group_id: int) -> List[int]:
    """ID отметившихся участников группы"""
    return sorted(_checkins.get(group_id, {}))


def clear_group(group_id: int):
    """Сбросить все отметки группы"""
    _checkins.pop(group_id, None)


def discard_checkin(group_id: int, course_user_id: int):
    """Убрать отметку одного участника"""
    marks = _checkins.get(group_id)
    if marks is None:
        return
    marks.pop(course_user_id, None)
    if not marks:
        del _checkins[group_id]


def purge_expired(timeout: Optional[int] = None, now: Optional[float] = None) -> int:
    """Удалить просроченные отметки, вернуть их количество"""
    timeout = config.CHECKIN_TIMEOUT if timeout is None else timeout
    now = time.monotonic() if now is None else now
    removed = 0

    for group_id in list(_checkins):
        members = _checkins[group_id]
        for course_user_id, checked_in_at in list(members.items()):
            if now - checked_in_at >= timeout:
                del members[course_user_id]
                removed += 1
        if not members:
            del _checkins[group_id]

    return removed


def reset():
    """Очистить реестр полностью"""
    _checkins.clear()
