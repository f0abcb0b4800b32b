"""
Connection acquisition for external databases.

Uses psycopg (PostgreSQL), pymysql (MySQL), python-oracledb (Oracle) or
pymssql (SQL Server) based on the vendor name. The password is always passed
in already resolved; secret lookup happens elsewhere.
"""

import logging
from typing import Any

import oracledb
import psycopg
import pymssql
import pymysql
from pydantic import BaseModel, Field, field_validator

from dbrunner.core.config import settings
from dbrunner.core.error_classifier import ErrorClassifier
from dbrunner.core.errors import ErrorKind
from dbrunner.vendors.base import VendorCapability
from dbrunner.vendors.registry import canonical_vendor_name

_log = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Where and as whom to connect. Port ``None`` means the vendor default."""

    vendor: str
    host: str
    port: int | None = None
    database: str
    username: str
    connection_mode: str | None = None
    properties: dict[str, str] = Field(default_factory=dict)

    @field_validator("vendor")
    @classmethod
    def _canonical_vendor(cls, v: str) -> str:
        return canonical_vendor_name(v)


def _driver_kwargs(
    vendor: VendorCapability, config: ConnectionConfig, password: str
) -> dict[str, Any]:
    timeout = settings.EXTERNAL_DB_CONNECT_TIMEOUT
    props = {**vendor.default_properties, **config.properties}
    mode = vendor.resolve_mode(config.connection_mode)
    port = config.port if config.port and config.port > 0 else vendor.default_port

    if vendor.driver == "psycopg":
        if mode == "service":
            kwargs: dict[str, Any] = {"service": config.database}
        else:
            kwargs = {"host": config.host, "port": port, "dbname": config.database}
        kwargs.update(
            user=config.username,
            password=password,
            connect_timeout=timeout,
            application_name=props.get("application_name", "dbrunner"),
        )
        if "sslmode" in props:
            kwargs["sslmode"] = props["sslmode"]
        return kwargs
    if vendor.driver == "pymysql":
        return {
            "host": config.host,
            "port": port,
            "database": config.database,
            "user": config.username,
            "password": password,
            "connect_timeout": timeout,
            "charset": props.get("charset", "utf8mb4"),
        }
    if vendor.driver == "oracledb":
        return {
            "user": config.username,
            "password": password,
            "dsn": vendor.build_connection_url(
                config.host, config.port, config.database, config.connection_mode
            ),
            "tcp_connect_timeout": float(timeout),
        }
    if vendor.driver == "pymssql":
        if mode == "browser":
            server = f"{config.host}\\{vendor.config.directory_context}"
            kwargs = {"server": server}
        else:
            kwargs = {"server": config.host, "port": str(port)}
        kwargs.update(
            user=config.username,
            password=password,
            database=config.database,
            login_timeout=timeout,
            appname=props.get("appname", "dbrunner"),
        )
        if "tds_version" in props:
            kwargs["tds_version"] = props["tds_version"]
        return kwargs
    raise ValueError(f"Unsupported vendor driver: {vendor.name} ({vendor.driver})")


_CONNECTORS = {
    "psycopg": psycopg.connect,
    "pymysql": pymysql.connect,
    "oracledb": oracledb.connect,
    "pymssql": pymssql.connect,
}


def connect(
    config: ConnectionConfig,
    password: str | None,
    vendor: VendorCapability,
) -> Any:
    """
    Open a DB-API connection described by *config* for *vendor*.

    Driver failures are raised as ``NormalizedError`` (connection or
    authentication failure where the driver says so, otherwise
    CONNECTION_FAILURE).
    """
    if vendor.name != config.vendor:
        raise ValueError(f"Vendor mismatch: config is {config.vendor}, vendor is {vendor.name}")
    for name in ("host", "database", "username"):
        if not getattr(config, name):
            raise ValueError(f"connection config must provide {name}")

    kwargs = _driver_kwargs(vendor, config, password if password is not None else "")
    connector = _CONNECTORS[vendor.driver]
    try:
        conn = connector(**kwargs)
    except Exception as e:
        err = ErrorClassifier(vendor.name, vendor.config).from_exception(
            e, fallback=ErrorKind.CONNECTION_FAILURE
        )
        _log.warning(
            "Connection to %s %s/%s failed: %s",
            vendor.name,
            config.host,
            config.database,
            err,
        )
        raise err from e
    _log.debug("Connected to %s %s/%s", vendor.name, config.host, config.database)
    return conn


def execute(
    conn: Any,
    sql: str,
    params: dict | list | tuple | None = None,
    *,
    vendor: VendorCapability | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor) or cursor.rowcount.

    - vendor: used for EXTERNAL_DB_STATEMENT_TIMEOUT. When set, the vendor's
      session timeout is applied in ms before the statement and cleared after.
    """
    timeout_sec = settings.EXTERNAL_DB_STATEMENT_TIMEOUT
    use_timeout = timeout_sec is not None and timeout_sec > 0 and vendor is not None

    if use_timeout:
        vendor.apply_statement_timeout(conn, int(timeout_sec * 1000))

    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    except Exception:
        try:
            cur.close()
        except Exception:
            pass
        raise
    finally:
        if use_timeout:
            try:
                vendor.apply_statement_timeout(conn, 0)
            except Exception as e:
                _log.debug("Could not clear statement timeout on %s: %s", vendor.name, e)

    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to a list of dicts keyed by column label, in column order."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
