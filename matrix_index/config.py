import os

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatrixConfig(BaseModel):
    homeserver: str
    user: str
    password: str
    room_ids: list[str] = []  # Empty list means all joined rooms


class DatabaseConfig(BaseModel):
    """Where one profile keeps its index: a SQLite file, or a PostgreSQL database."""

    type: str = "sqlite"  # 'sqlite' or 'postgresql'
    database: str = "matrix_index.db"  # SQLite file path, or PostgreSQL database name
    # PostgreSQL connection
    host: str = ""
    port: int = 5432
    user: str = ""
    password: str = ""
    echo: bool = False  # Log every SQL statement

    @property
    def url(self) -> str:
        """SQLAlchemy URL of the index store."""
        if self.type == "sqlite":
            return f"sqlite:///{self.database}"
        elif self.type == "postgresql":
            return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"
        else:
            raise ValueError(f"Unsupported database type: {self.type}")


class LogConfig(BaseModel):
    file_path: str = "logs/matrix_index.log"
    max_size_mb: int = 10
    backup_count: int = 5
    level: str = "INFO"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


def _room_ids_from_env() -> list[str]:
    raw = os.environ.get("MATRIX_ROOM_IDS", "")
    return [room_id.strip() for room_id in raw.split(",") if room_id.strip()]


def _database_from_env() -> DatabaseConfig:
    db_type = os.environ.get("DATABASE_TYPE", "sqlite")
    echo = _env_flag("DATABASE_ECHO")
    if db_type == "sqlite":
        return DatabaseConfig(
            type="sqlite",
            database=os.environ.get("SQLITE_DB", "matrix_index.db"),
            echo=echo,
        )
    if db_type == "postgresql":
        return DatabaseConfig(
            type="postgresql",
            host=os.environ.get("POSTGRES_HOST", "localhost"),
            port=int(os.environ.get("POSTGRES_PORT", "5432")),
            database=os.environ.get("POSTGRES_DB", ""),
            user=os.environ.get("POSTGRES_USER", ""),
            password=os.environ.get("POSTGRES_PASSWORD", ""),
            echo=echo,
        )
    raise ValueError(f"Unsupported database type: {db_type}")


class Settings(BaseSettings):
    matrix: MatrixConfig
    database: DatabaseConfig
    sync_state_file: str = "matrix_index_sync_state.json"
    logging: LogConfig = LogConfig()

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env")

    def __init__(self, **kwargs):
        # Flat MATRIX_* / DATABASE_* / POSTGRES_* variables; LOGGING__* is left to pydantic-settings
        if "matrix" not in kwargs:
            kwargs["matrix"] = MatrixConfig(
                homeserver=os.environ.get("MATRIX_HOMESERVER", ""),
                user=os.environ.get("MATRIX_USER", ""),
                password=os.environ.get("MATRIX_PASSWORD", ""),
                room_ids=_room_ids_from_env(),
            )
        if "database" not in kwargs:
            kwargs["database"] = _database_from_env()
        super().__init__(**kwargs)
