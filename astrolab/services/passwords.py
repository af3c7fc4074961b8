"""
Проверка паролей (bcrypt)
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class BcryptPasswordEncoder:
    """Кодирование и проверка паролей; понимает хеши $2a$ / $2b$ / $2y$"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def encode(self, plaintext: str) -> str:
        hashed = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        return hashed.decode("utf-8")

    def matches(self, plaintext: str, stored_hash: str) -> bool:
        if not plaintext or not stored_hash:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), stored_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Некорректный хеш пароля: {e}")
            return False


# Кодировщик по умолчанию
password_encoder = BcryptPasswordEncoder()
