"""
SQL-запросы к базе данных

Все функции принимают соединение с открытой транзакцией
(см. astrolab.database.connection.transaction).
"""

from typing import Optional, List, Tuple

import asyncpg

from astrolab.database.models import CourseUser, ModuleGroup, GroupMember, Question, Answer
from astrolab.roles import CourseRole


COURSE_USER_COLUMNS = "cu.id, cu.user_id, cu.course_id, cu.role, cu.is_active"


def _affected_rows(status: str) -> int:
    """'DELETE 3' / 'INSERT 0 3' -> 3"""
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


# ============================================
# Course users
# ============================================

async def lock_course_user(conn: asyncpg.Connection, course_user_id: int) -> Optional[CourseUser]:
    """Получить участника курса с блокировкой строки до конца транзакции"""
    row = await conn.fetchrow(
        f"SELECT {COURSE_USER_COLUMNS} FROM course_users cu WHERE cu.id = $1 FOR UPDATE",
        course_user_id
    )
    if row:
        return CourseUser(**dict(row))
    return None


async def get_free_users(conn: asyncpg.Connection, course_id: int, module_id: int) -> List[CourseUser]:
    """
    Студенты курса, не состоящие ни в одной группе модуля.
    Деактивированные участники и отключённые учётные записи не попадают в
    список, как и в get_users_in_group.
    """
    rows = await conn.fetch(
        f"""
        SELECT {COURSE_USER_COLUMNS} FROM course_users cu
        INNER JOIN users u ON u.id = cu.user_id
        WHERE cu.course_id = $1
          AND cu.role = $3
          AND cu.is_active = TRUE
          AND u.is_enabled = TRUE
          AND NOT EXISTS (
              SELECT 1 FROM group_members gm
              INNER JOIN module_groups g ON g.id = gm.group_id
              WHERE gm.course_user_id = cu.id AND g.module_id = $2
          )
        ORDER BY cu.id
        """,
        course_id, module_id, CourseRole.STUDENT.value
    )
    return [CourseUser(**dict(row)) for row in rows]


async def find_member_credentials(
    conn: asyncpg.Connection,
    email: str,
    group_id: int
) -> Optional[Tuple[CourseUser, str]]:
    """
    Активный участник группы с включённой учётной записью по email
    (без учёта регистра). Возвращает (участник, хеш пароля).
    """
    row = await conn.fetchrow(
        f"""
        SELECT {COURSE_USER_COLUMNS}, u.password FROM group_members gm
        INNER JOIN course_users cu ON cu.id = gm.course_user_id
        INNER JOIN users u ON u.id = cu.user_id
        WHERE gm.group_id = $1
          AND lower(u.email) = lower($2)
          AND cu.is_active = TRUE
          AND u.is_enabled = TRUE
        """,
        group_id, email
    )
    if not row:
        return None
    data = dict(row)
    password = data.pop("password")
    return CourseUser(**data), password


# ============================================
# Groups
# ============================================

async def get_group_by_id(conn: asyncpg.Connection, group_id: int) -> Optional[ModuleGroup]:
    """Получить группу по ID"""
    row = await conn.fetchrow(
        "SELECT id, module_id, is_locked FROM module_groups WHERE id = $1",
        group_id
    )
    if row:
        return ModuleGroup(**dict(row))
    return None


async def get_group_for_user(
    conn: asyncpg.Connection,
    course_user_id: int,
    module_id: int
) -> Optional[ModuleGroup]:
    """Группа активного участника курса в модуле"""
    row = await conn.fetchrow(
        """
        SELECT g.id, g.module_id, g.is_locked FROM group_members gm
        INNER JOIN module_groups g ON g.id = gm.group_id
        INNER JOIN course_users cu ON cu.id = gm.course_user_id
        WHERE cu.id = $1 AND cu.is_active = TRUE AND g.module_id = $2
        """,
        course_user_id, module_id
    )
    if row:
        return ModuleGroup(**dict(row))
    return None


async def create_group(conn: asyncpg.Connection, module_id: int) -> ModuleGroup:
    """Создать группу для модуля"""
    row = await conn.fetchrow(
        """
        INSERT INTO module_groups (module_id)
        VALUES ($1)
        RETURNING id, module_id, is_locked
        """,
        module_id
    )
    return ModuleGroup(**dict(row))


async def lock_group(conn: asyncpg.Connection, group_id: int) -> bool:
    """Закрыть группу. False — группа не найдена или уже закрыта"""
    status = await conn.execute(
        "UPDATE module_groups SET is_locked = TRUE WHERE id = $1 AND is_locked = FALSE",
        group_id
    )
    return _affected_rows(status) > 0


async def lock_group_row(conn: asyncpg.Connection, group_id: int) -> bool:
    """Заблокировать строку группы до конца транзакции. False — группа не найдена"""
    row = await conn.fetchrow(
        "SELECT id FROM module_groups WHERE id = $1 FOR UPDATE",
        group_id
    )
    return row is not None


async def delete_group(conn: asyncpg.Connection, group_id: int):
    """Удалить группу (ответы и членства удаляются каскадно)"""
    await conn.execute(
        "DELETE FROM module_groups WHERE id = $1",
        group_id
    )


# ============================================
# Group members
# ============================================

async def is_in_a_group(conn: asyncpg.Connection, course_user_id: int, module_id: int) -> bool:
    """Состоит ли участник курса в группе модуля"""
    result = await conn.fetchval(
        """
        SELECT EXISTS(
            SELECT 1 FROM group_members gm
            INNER JOIN module_groups g ON g.id = gm.group_id
            WHERE gm.course_user_id = $1 AND g.module_id = $2
        )
        """,
        course_user_id, module_id
    )
    return result or False


async def add_member(
    conn: asyncpg.Connection,
    course_user_id: int,
    group_id: int,
    module_id: int
) -> GroupMember:
    """Добавить участника в группу"""
    row = await conn.fetchrow(
        """
        INSERT INTO group_members (course_user_id, group_id, module_id)
        VALUES ($1, $2, $3)
        RETURNING id, course_user_id, group_id, module_id
        """,
        course_user_id, group_id, module_id
    )
    return GroupMember(**dict(row))


async def delete_member(conn: asyncpg.Connection, group_id: int, course_user_id: int) -> int:
    """Удалить участника из группы, возвращает число удалённых строк"""
    status = await conn.execute(
        "DELETE FROM group_members WHERE group_id = $1 AND course_user_id = $2",
        group_id, course_user_id
    )
    return _affected_rows(status)


async def count_members(conn: asyncpg.Connection, group_id: int) -> int:
    """Количество записей о членстве в группе (без фильтра активности)"""
    count = await conn.fetchval(
        "SELECT COUNT(*) FROM group_members WHERE group_id = $1",
        group_id
    )
    return count or 0


async def get_users_in_group(conn: asyncpg.Connection, group_id: int) -> List[CourseUser]:
    """Активные участники группы с включённой учётной записью"""
    rows = await conn.fetch(
        f"""
        SELECT {COURSE_USER_COLUMNS} FROM group_members gm
        INNER JOIN course_users cu ON cu.id = gm.course_user_id
        INNER JOIN users u ON u.id = cu.user_id
        WHERE gm.group_id = $1 AND cu.is_active = TRUE AND u.is_enabled = TRUE
        ORDER BY gm.id
        """,
        group_id
    )
    return [CourseUser(**dict(row)) for row in rows]


async def count_members_not_checked_in(
    conn: asyncpg.Connection,
    group_id: int,
    checked_in: List[int]
) -> int:
    """Сколько активных участников группы ещё не отметились"""
    count = await conn.fetchval(
        """
        SELECT COUNT(*) FROM group_members gm
        INNER JOIN course_users cu ON cu.id = gm.course_user_id
        INNER JOIN users u ON u.id = cu.user_id
        WHERE gm.group_id = $1
          AND cu.is_active = TRUE
          AND u.is_enabled = TRUE
          AND cu.id <> ALL($2::bigint[])
        """,
        group_id, checked_in
    )
    return count or 0


# ============================================
# Questions
# ============================================

async def get_module_questions(conn: asyncpg.Connection, module_id: int) -> List[Question]:
    """Вопросы модуля в порядке страниц"""
    rows = await conn.fetch(
        """
        SELECT q.id, q.page_id, q.question_order, q.text FROM questions q
        INNER JOIN pages p ON p.id = q.page_id
        WHERE p.module_id = $1
        ORDER BY p.page_order, q.question_order, q.id
        """,
        module_id
    )
    return [Question(**dict(row)) for row in rows]


# ============================================
# Answers
# ============================================

async def get_answers(
    conn: asyncpg.Connection,
    group_id: int,
    submission_number: int,
    submitted_only: bool = False
) -> List[Answer]:
    """Ответы группы для номера сдачи (0 — черновики)"""
    sql = """
        SELECT id, question_id, group_id, value, submission_number, submission_timestamp
        FROM answers
        WHERE group_id = $1 AND submission_number = $2
    """
    if submitted_only:
        sql += " AND submission_timestamp IS NOT NULL"
    sql += " ORDER BY question_id, id"

    rows = await conn.fetch(sql, group_id, submission_number)
    return [Answer(**dict(row)) for row in rows]


async def get_max_submission_number(conn: asyncpg.Connection, group_id: int) -> Optional[int]:
    """Максимальный номер сдачи группы (None — ответов нет)"""
    return await conn.fetchval(
        "SELECT MAX(submission_number) FROM answers WHERE group_id = $1",
        group_id
    )


async def update_answer_value(conn: asyncpg.Connection, answer_id: int, value: Optional[str]):
    """Обновить значение ответа"""
    await conn.execute(
        "UPDATE answers SET value = $1 WHERE id = $2",
        value, answer_id
    )


async def create_draft_answers(conn: asyncpg.Connection, group_id: int, question_ids: List[int]):
    """Создать пустые черновики (submission_number = 0) по списку вопросов"""
    await conn.executemany(
        "INSERT INTO answers (question_id, group_id) VALUES ($1, $2)",
        [(question_id, group_id) for question_id in question_ids]
    )


async def copy_drafts_to_submission(
    conn: asyncpg.Connection,
    group_id: int,
    submission_number: int
) -> int:
    """
    Скопировать черновики в новую сдачу с отметкой времени.
    Черновики остаются как есть. Возвращает число созданных строк.
    """
    status = await conn.execute(
        """
        INSERT INTO answers (question_id, group_id, value, submission_number, submission_timestamp)
        SELECT question_id, group_id, value, $2, NOW()
        FROM answers
        WHERE group_id = $1 AND submission_number = 0
        """,
        group_id, submission_number
    )
    return _affected_rows(status)
