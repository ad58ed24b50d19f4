from dataclasses import dataclass
from environs import Env, EnvError
from sqlalchemy.engine import URL
import sys

@dataclass
class Config:
    env = Env()
    env.read_env()

    try:
        DB_HOST = env.str("DB_HOST", "localhost")
        DB_PORT = env.int("DB_PORT", 5432)
        DB_USER = env.str("DB_USER", "gogo")
        DB_PASSWORD = env.str("DB_PASSWORD", "")
        DB_NAME = env.str("DB_NAME", "gogo_delivery")
        # Role that owns the tables, e.g. "gogo"
        DB_OWNER = env.str("DB_OWNER", None)
        # Full SQLAlchemy URL, overrides the parts above
        DB_URL = env.str("DB_URL", None)
        DB_ECHO = env.bool("DB_ECHO", False)
        DB_POOL_SIZE = env.int("DB_POOL_SIZE", 20)
        DB_MAX_OVERFLOW = env.int("DB_MAX_OVERFLOW", 10)

    except EnvError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    @classmethod
    def database_url(cls) -> str:
        if cls.DB_URL:
            return cls.DB_URL
        return URL.create(
            "postgresql+asyncpg",
            username=cls.DB_USER,
            password=cls.DB_PASSWORD or None,
            host=cls.DB_HOST,
            port=cls.DB_PORT,
            database=cls.DB_NAME,
        ).render_as_string(hide_password=False)

    @classmethod
    def validate(cls):
        if cls.DB_URL:
            return
        if not all([cls.DB_HOST, cls.DB_USER, cls.DB_NAME]):
            raise ValueError("Database configuration is incomplete")
