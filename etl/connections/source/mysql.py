from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .._client_cache import get_or_create_client
from .._config import load_connection_config
from .._logging import get_logger, redact_config
from .config import MySQLConfig

LOGGER = get_logger("source.mysql")


def _build_mysql_url(config: MySQLConfig) -> str:
    username = quote_plus(config.username)
    password = quote_plus(config.password)
    database = quote_plus(config.database)
    return (
        f"mysql+pymysql://{username}:{password}@{config.host}:{config.port}/{database}"
        f"?charset={config.charset}"
    )


def get_mysql_engine(
    host: str | None = None,
    port: int | None = None,
    database: str | None = None,
    username: str | None = None,
    password: str | None = None,
    config: dict | None = None,
    file_path: str | None = None,
    env_prefix: str = "DB",
    reuse: bool = True,
) -> Engine:
    merged_config = load_connection_config(
        config,
        file_path=file_path,
        section="mysql",
        env_prefix=env_prefix,
        required=("host", "username", "password"),
        defaults={"port": 3306},
        overrides={
            "host": host,
            "port": port,
            "database": database,
            "username": username,
            "password": password,
        },
    )
    validated_config = MySQLConfig.model_validate(merged_config)
    LOGGER.info("Creating MySQL engine with config=%s", redact_config(validated_config.model_dump()))

    def factory() -> Engine:
        # pool_recycle keeps long batch loops clear of MySQL's wait_timeout disconnects
        return create_engine(
            _build_mysql_url(validated_config),
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={"connect_timeout": validated_config.connect_timeout},
        )

    return get_or_create_client("src_mysql", validated_config.model_dump(), factory, reuse=reuse)


def test_mysql_connection(*args, raise_on_error: bool = False, **kwargs) -> bool:
    try:
        engine = get_mysql_engine(*args, **kwargs)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception:
        LOGGER.exception("MySQL connection test failed")
        if raise_on_error:
            raise
        return False
