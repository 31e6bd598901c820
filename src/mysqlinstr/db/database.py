"""Database engine for the init/lcov/report commands.

Accepts either a SQLAlchemy URL or the ``user:pass@tcp(host:port)/db``
DSN form used by MySQL drivers elsewhere, and always talks to MySQL
through PyMySQL. Instrumentation itself never touches the database.
"""

from __future__ import annotations

import re
import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, OperationalError, SQLAlchemyError
from sqlmodel import Session, create_engine

from mysqlinstr.core.errors import DatabaseError

T = TypeVar("T")

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from mysqlinstr.config.models import DatabaseConfig

log = structlog.get_logger(__name__)

DEFAULT_DRIVER = "mysql+pymysql"

# Retry configuration for transient connection failures
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BASE_DELAY = 0.5
DEFAULT_RETRY_MAX_DELAY = 4.0

_DRIVER_DSN = re.compile(
    r"^(?:(?P<user>[^:@/]*)(?::(?P<password>[^@]*))?@)?"
    r"(?:(?P<net>\w+)\((?P<address>[^)]*)\))?"
    r"/(?P<database>[^?]*)"
    r"(?:\?(?P<params>.*))?$"
)
# Query parameters PyMySQL understands; other driver options are dropped
_PASSTHROUGH_PARAMS = frozenset({"charset", "ssl_ca", "ssl_cert", "ssl_key", "unix_socket"})


def normalize_dsn(dsn: str) -> URL:
    """Turn a SQLAlchemy URL or driver-style DSN into a SQLAlchemy URL.

    Raises:
        DatabaseError: The DSN cannot be understood.
    """
    dsn = dsn.strip()
    if not dsn:
        raise DatabaseError.invalid_dsn(dsn, "empty DSN")

    if "://" in dsn:
        try:
            url = make_url(dsn)
        except ArgumentError as e:
            raise DatabaseError.invalid_dsn(dsn, str(e)) from e
        if url.drivername == "mysql":
            url = url.set(drivername=DEFAULT_DRIVER)
        return url

    match = _DRIVER_DSN.match(dsn)
    if match is None:
        raise DatabaseError.invalid_dsn(dsn, "expected user:pass@tcp(host:port)/dbname")

    host: str | None = None
    port: int | None = None
    query: dict[str, str] = {}
    net = (match["net"] or "tcp").lower()
    address = match["address"] or ""
    if net == "unix":
        query["unix_socket"] = address
    elif net == "tcp":
        if address:
            host, _, port_text = address.rpartition(":") if ":" in address else (address, "", "")
            if port_text:
                if not port_text.isdigit():
                    raise DatabaseError.invalid_dsn(dsn, f"invalid port {port_text!r}")
                port = int(port_text)
    else:
        raise DatabaseError.invalid_dsn(dsn, f"unsupported network {net!r}")

    for pair in filter(None, (match["params"] or "").split("&")):
        key, _, value = pair.partition("=")
        if key in _PASSTHROUGH_PARAMS:
            query[key] = value
        else:
            log.debug("dsn_param_dropped", param=key)

    return URL.create(
        DEFAULT_DRIVER,
        username=match["user"] or None,
        password=match["password"] or None,
        host=host or None,
        port=port,
        database=match["database"] or None,
        query=query,
    )


class Database:
    """Engine wrapper with retry on transient connection failures."""

    def __init__(
        self,
        dsn: str,
        *,
        connect_timeout: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    ) -> None:
        self.url = normalize_dsn(dsn)
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self.engine = self._create_engine(connect_timeout, pool_pre_ping, echo)

    @classmethod
    def from_config(cls, config: DatabaseConfig, dsn: str | None = None) -> Database:
        """Build from config; an explicit ``dsn`` wins over ``config.dsn``."""
        resolved = dsn or config.dsn
        if not resolved:
            raise DatabaseError.invalid_dsn("", "no database DSN given (use --database)")
        return cls(
            resolved,
            connect_timeout=config.connect_timeout_sec,
            pool_pre_ping=config.pool_pre_ping,
            echo=config.echo,
        )

    def _create_engine(self, connect_timeout: int, pool_pre_ping: bool, echo: bool) -> Engine:
        connect_args: dict[str, Any] = {}
        if self.url.drivername == DEFAULT_DRIVER:
            connect_args["connect_timeout"] = connect_timeout
        return create_engine(
            self.url,
            connect_args=connect_args,
            pool_pre_ping=pool_pre_ping,
            echo=echo,
        )

    def _with_retry(self, operation: str, action: Any) -> T:
        for attempt in range(self._max_retries + 1):
            try:
                return action()  # type: ignore[no-any-return]
            except OperationalError as e:
                if attempt < self._max_retries and e.connection_invalidated is False:
                    delay = min(self._retry_base_delay * (2**attempt), DEFAULT_RETRY_MAX_DELAY)
                    log.warning(
                        "database_retry",
                        operation=operation,
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                        delay_sec=delay,
                    )
                    time.sleep(delay)
                    continue
                raise DatabaseError.connection_failed(str(e.orig or e)) from e
            except SQLAlchemyError as e:
                raise DatabaseError.query_failed(operation, str(e)) from e
        raise DatabaseError.connection_failed(f"{operation}: retries exhausted")

    def ping(self) -> None:
        """Open a connection once to surface connectivity errors early."""

        def connect() -> None:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")

        self._with_retry("connect", connect)

    def execute_script(self, statements: Iterable[str], *, operation: str) -> None:
        """Run DDL statements in order inside one connection."""
        statements = list(statements)

        def run() -> None:
            with self.engine.begin() as conn:
                for statement in statements:
                    log.debug("execute_ddl", statement=statement.split("\n", 1)[0])
                    conn.exec_driver_sql(statement)

        self._with_retry(operation, run)
        log.debug("script_executed", operation=operation, statements=len(statements))

    def query(self, operation: str, fn: Any) -> T:
        """Run ``fn(session)`` inside a session, mapping driver errors."""

        def run() -> T:
            with self.session() as session:
                return fn(session)  # type: ignore[no-any-return]

        return self._with_retry(operation, run)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for event reads."""
        with Session(self.engine) as session:
            yield session

    def dispose(self) -> None:
        self.engine.dispose()
