import os
from functools import lru_cache


class Settings:

    def __init__(self) -> None:
        self.mongodb_url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
        self.mongodb_db = os.getenv("MONGODB_DB", "direct_messages")
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.message_max_length = int(os.getenv("MESSAGE_MAX_LENGTH", "4000"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
