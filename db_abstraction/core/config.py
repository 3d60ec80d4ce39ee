import json
import logging
import os
import pathlib
from dataclasses import dataclass, field

from db_abstraction.dialect import DBType


logger = logging.getLogger(__name__)


@dataclass
class PostgresConfig:
    host: str = "localhost"
    port: int = 5432
    name: str = "postgres"
    user: str = "postgres"
    password: str = ""
    sslmode: str = "prefer"
    min_size: int = 2
    max_size: int = 10

    @property
    def conninfo(self) -> str:
        return (
            f"host={self.host} port={self.port} "
            f"dbname={self.name} user={self.user} password={self.password} "
            f"sslmode={self.sslmode}"
        )


@dataclass
class MySQLConfig:
    host: str = "localhost"
    port: int = 3306
    name: str = "mysql"
    user: str = "root"
    password: str = ""
    connection_limit: int = 10


@dataclass
class SQLiteConfig:
    path: str = "database.sqlite3"
    interval: float = 0.25  # seconds between drain cycles


@dataclass
class DatabaseConfig:
    type: str = DBType.SQLITE.value
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    mysql: MySQLConfig = field(default_factory=MySQLConfig)
    sqlite: SQLiteConfig = field(default_factory=SQLiteConfig)

    @property
    def db_type(self) -> DBType:
        return DBType(self.type)

    @classmethod
    def from_dict(cls, data: dict) -> "DatabaseConfig":
        return cls(
            type=data.get("type", DBType.SQLITE.value),
            postgres=PostgresConfig(**data.get("postgres", {})),
            mysql=MySQLConfig(**data.get("mysql", {})),
            sqlite=SQLiteConfig(**data.get("sqlite", {})),
        )

    @classmethod
    def load(cls, config_path: str | None = None) -> "DatabaseConfig":
        config_path = config_path or os.environ.get(
            "CONFIG_FILE", "/run/secrets/config.json"
        )
        path = pathlib.Path(config_path)

        if path.exists():
            with open(path) as f:
                data = json.load(f)
            return cls.from_dict(data.get("database", {}))

        logger.warning("Config file not found at %s", config_path)
        return cls()
