"""
Группы модулей — членство, отметки, закрытие и сдача ответов

Каждая операция выполняется в отдельной транзакции.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

import asyncpg

from astrolab.database import queries as db
from astrolab.database.connection import transaction
from astrolab.database.models import Answer, CourseUser, ModuleGroup, Question
from astrolab.exceptions import GroupAlterationException
from astrolab.roles import CourseRole
from astrolab.services import checkins
from astrolab.services.passwords import password_encoder

logger = logging.getLogger(__name__)


# ============================================
# Membership
# ============================================

async def _enforce_not_in_group(conn: asyncpg.Connection, course_user_id: int, module_id: int):
    """
    Проверка перед вступлением: участник существует, он студент и ещё не в
    группе модуля. Строка участника блокируется до конца транзакции, чтобы
    два параллельных вступления не прошли проверку одновременно.
    """
    user = await db.lock_course_user(conn, course_user_id)

    reason = ""
    if user is None:
        reason = "unknown course user"
    elif user.role != CourseRole.STUDENT.value:
        reason = f"role {user.role}"
    elif await db.is_in_a_group(conn, course_user_id, module_id):
        reason = "already in a group"

    if reason:
        logger.info(f"Course user: '{course_user_id}' cannot join group for module: '{module_id}' ({reason})")
        raise GroupAlterationException(course_user_id, module_id, reason)

    logger.debug(f"Course user: '{course_user_id}' can join group for module: '{module_id}'")


async def _add_member(conn: asyncpg.Connection, course_user_id: int, group_id: int, module_id: int):
    try:
        await db.add_member(conn, course_user_id, group_id, module_id)
    except asyncpg.UniqueViolationError as e:
        raise GroupAlterationException(course_user_id, module_id, "already in a group") from e


async def join_group(course_user_id: int, module_id: int, group_id: int) -> List[CourseUser]:
    """Вступить в существующую группу, вернуть обновлённый состав"""
    async with transaction() as conn:
        await _enforce_not_in_group(conn, course_user_id, module_id)

        logger.debug(f"Joining group: '{group_id}' for course user: '{course_user_id}' for module: '{module_id}'")
        group = await db.get_group_by_id(conn, group_id)
        if group is None or group.module_id != module_id:
            logger.info(f"Group: '{group_id}' not found for module: '{module_id}'")
            raise GroupAlterationException(course_user_id, module_id, f"no group {group_id} in module")

        await _add_member(conn, course_user_id, group_id, module_id)
        return await db.get_users_in_group(conn, group_id)


async def create_group(course_user_id: int, module_id: int) -> ModuleGroup:
    """Создать группу и сделать создателя её первым участником"""
    async with transaction() as conn:
        await _enforce_not_in_group(conn, course_user_id, module_id)

        logger.debug(f"Creating group for course user: '{course_user_id}' for module: '{module_id}'")
        group = await db.create_group(conn, module_id)
        await _add_member(conn, course_user_id, group.id, module_id)
        return group


async def is_in_a_group(course_user_id: int, module_id: int) -> bool:
    async with transaction() as conn:
        return await db.is_in_a_group(conn, course_user_id, module_id)


async def get_group(course_user_id: int, module_id: int) -> Optional[ModuleGroup]:
    """Группа активного участника курса в модуле или None"""
    logger.debug(f"Getting group for course user: '{course_user_id}' for module: '{module_id}'")
    async with transaction() as conn:
        group = await db.get_group_for_user(conn, course_user_id, module_id)

    if group is None:
        logger.info(f"No group for course user: '{course_user_id}' for module: '{module_id}'")
    return group


async def get_group_by_id(group_id: int) -> Optional[ModuleGroup]:
    async with transaction() as conn:
        return await db.get_group_by_id(conn, group_id)


async def get_users_in_group(group_id: int) -> List[CourseUser]:
    """Активные участники группы с включённой учётной записью"""
    logger.debug(f"Getting group members in group: '{group_id}'")
    async with transaction() as conn:
        return await db.get_users_in_group(conn, group_id)


async def remove_from_group(group_id: int, course_user_id: int) -> Optional[List[CourseUser]]:
    """
    Исключить участника. Если группа опустела — удалить её и вернуть None,
    иначе вернуть оставшихся участников.
    """
    logger.debug(f"Deleting group member in group: '{group_id}' with course user id: '{course_user_id}'")
    async with transaction() as conn:
        await db.delete_member(conn, group_id, course_user_id)

        if await db.count_members(conn, group_id) == 0:
            logger.debug(f"Removing group instance for group: '{group_id}'")
            await db.delete_group(conn, group_id)
            remaining = None
        else:
            remaining = await db.get_users_in_group(conn, group_id)

    # Реестр меняем только после COMMIT
    if remaining is None:
        checkins.clear_group(group_id)
    else:
        checkins.discard_checkin(group_id, course_user_id)
    return remaining


async def get_free_users(course_id: int, module_id: int) -> List[CourseUser]:
    """
    Студенты курса без группы в модуле.
    Только активные участники с включённой учётной записью: деактивированных
    и отключённых не предлагаем как свободных.
    """
    async with transaction() as conn:
        return await db.get_free_users(conn, course_id, module_id)


# ============================================
# Check-in
# ============================================

async def checkin(email: str, password: str, group_id: int, encoder=password_encoder) -> Optional[CourseUser]:
    """Проверить email и пароль участника группы. Неудача — None, не ошибка"""
    async with transaction() as conn:
        found = await db.find_member_credentials(conn, email, group_id)

    if found is not None:
        user, password_hash = found
        if encoder.matches(password, password_hash):
            logger.debug(f"Checkin successful for user: '{email}' in group: '{group_id}'")
            return user

    logger.info(f"Checkin not successful for user: '{email}' in group: '{group_id}'")
    return None


async def has_lock(group_id: int, checked_in: Iterable[int]) -> bool:
    """Все активные участники группы отметились"""
    logger.debug(f"Checking if group: '{group_id}' has the lock")
    async with transaction() as conn:
        missing = await db.count_members_not_checked_in(conn, group_id, list(checked_in))
    return missing == 0


async def checkin_member(email: str, password: str, group_id: int, encoder=password_encoder) -> Optional[CourseUser]:
    """checkin + запись участника в реестр отметок"""
    user = await checkin(email, password, group_id, encoder=encoder)
    if user is not None:
        checkins.record_checkin(group_id, user.id)
    return user


async def group_has_lock(group_id: int) -> bool:
    """has_lock по текущему реестру отметок"""
    return await has_lock(group_id, checkins.get_checked_in(group_id))


# ============================================
# Answers
# ============================================

async def _submission_number(conn: asyncpg.Connection, group_id: int) -> Optional[int]:
    number = await db.get_max_submission_number(conn, group_id)
    if number is None:
        logger.warning(f"Could not retrieve submission number for group: '{group_id}'")
    return number


async def _get_answers(conn: asyncpg.Connection, group_id: int, want_drafts: bool) -> List[Answer]:
    if want_drafts:
        return await db.get_answers(conn, group_id, 0)

    number = await _submission_number(conn, group_id)
    if number is None:
        return []
    return await db.get_answers(conn, group_id, number, submitted_only=True)


async def submission_number(group_id: int) -> Optional[int]:
    """Текущий максимальный номер сдачи группы"""
    logger.debug(f"Getting submission number for group: '{group_id}'")
    async with transaction() as conn:
        return await _submission_number(conn, group_id)


async def get_answers(group_id: int, want_drafts: bool) -> List[Answer]:
    """Черновики (want_drafts=True) или последняя сданная версия"""
    logger.debug(f"Getting answers for group: '{group_id}' (drafts={want_drafts})")
    async with transaction() as conn:
        return await _get_answers(conn, group_id, want_drafts)


async def save_answers(answers: Mapping[Any, Optional[str]], group_id: int) -> Optional[List[Answer]]:
    """
    Обновить значения черновиков по ID вопросов.
    Без черновиков (группа ещё не закрыта) — None.
    Значения приводятся к строке, None очищает ответ.
    """
    logger.debug(f"Saving answers for group: '{group_id}'")
    async with transaction() as conn:
        await db.lock_group_row(conn, group_id)
        drafts = await db.get_answers(conn, group_id, 0)
        if not drafts:
            return None

        by_question = {str(draft.question_id): draft for draft in drafts}
        for question_id, value in answers.items():
            draft = by_question.get(str(question_id))
            if draft is None:
                logger.debug(f"No draft for question: '{question_id}' in group: '{group_id}'")
                continue
            await db.update_answer_value(conn, draft.id, None if value is None else str(value))

        return await db.get_answers(conn, group_id, 0)


async def finalize_group(group_id: int):
    """
    Закрыть группу и создать пустые черновики на каждый вопрос модуля.
    Уже закрытая группа не меняется.
    """
    async with transaction() as conn:
        group = await db.get_group_by_id(conn, group_id)
        if group is None:
            logger.info(f"Cannot finalize missing group: '{group_id}'")
            return

        if not await db.lock_group(conn, group_id):
            logger.info(f"Group: '{group_id}' is already locked")
            return

        questions = await db.get_module_questions(conn, group.module_id)
        if questions:
            logger.debug(f"Creating {len(questions)} draft answers for group: '{group_id}'")
            await db.create_draft_answers(conn, group_id, [q.id for q in questions])


async def submit_answers(group_id: int) -> List[Answer]:
    """
    Сдать черновики новой версией (max + 1), вернуть её.
    Строка группы блокируется: параллельные сдачи получают разные номера.
    """
    logger.debug(f"Submitting answers for group: '{group_id}'")
    async with transaction() as conn:
        await db.lock_group_row(conn, group_id)
        drafts = await db.get_answers(conn, group_id, 0)

        if drafts:
            current = await _submission_number(conn, group_id) or 0
            created = await db.copy_drafts_to_submission(conn, group_id, current + 1)
            logger.debug(f"Group: '{group_id}' submitted round {current + 1} ({created} answers)")

        return await _get_answers(conn, group_id, want_drafts=False)


async def get_module_questions(module_id: int) -> List[Question]:
    async with transaction() as conn:
        return await db.get_module_questions(conn, module_id)
