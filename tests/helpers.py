"""
Общие данные и функции для тестов
"""

from astrolab.roles import CourseRole
from astrolab.services.passwords import BcryptPasswordEncoder

# Быстрый bcrypt для тестов
test_encoder = BcryptPasswordEncoder(rounds=4)

PASSWORD = "correct horse battery staple"


async def insert_course_user(
    pool,
    course_id: int,
    email: str,
    role: str = CourseRole.STUDENT.value,
    is_active: bool = True,
    is_enabled: bool = True,
    password_hash: str = None
) -> int:
    """Создать учётную запись и участника курса, вернуть ID участника"""
    if password_hash is None:
        password_hash = test_encoder.encode(PASSWORD)

    async with pool.acquire() as conn:
        user_id = await conn.fetchval(
            """
            INSERT INTO users (email, password, first_name, last_name, is_enabled)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            email, password_hash, email.split("@")[0].title(), "Test", is_enabled
        )
        return await conn.fetchval(
            """
            INSERT INTO course_users (user_id, course_id, role, is_active)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            user_id, course_id, role, is_active
        )


async def add_member_directly(pool, course_user_id: int, group_id: int, module_id: int):
    """Добавить участника в группу в обход проверок сервиса"""
    await pool.execute(
        "INSERT INTO group_members (course_user_id, group_id, module_id) VALUES ($1, $2, $3)",
        course_user_id, group_id, module_id
    )
