"""DDL for the recording tables and procedures installed by ``init``.

Each schema is an ordered list of single statements, executed one at a
time through the driver, so no DELIMITER handling is needed. Installing is
destructive: existing event tables are dropped and recreated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from mysqlinstr.db.database import Database

log = structlog.get_logger(__name__)

COVERAGE_TABLE = "__CoverageEvent"
FTRACE_TABLE = "__FtraceEvent"

COVERAGE_SCHEMA: tuple[str, ...] = (
    f"DROP TABLE IF EXISTS {COVERAGE_TABLE}",
    f"""CREATE TABLE {COVERAGE_TABLE} (
    id BIGINT AUTO_INCREMENT PRIMARY KEY,
    filename VARCHAR(255) NOT NULL,
    function_name VARCHAR(255) NOT NULL,
    line_number INT NOT NULL,
    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
) ENGINE = ARCHIVE""",
    "DROP PROCEDURE IF EXISTS __record_coverage",
    f"""CREATE PROCEDURE __record_coverage(IN filename VARCHAR(255), IN function_name VARCHAR(255), IN line_number INT)
BEGIN
    INSERT INTO {COVERAGE_TABLE} (filename, function_name, line_number)
    VALUES (filename, function_name, line_number);
END""",
)

FTRACE_SCHEMA: tuple[str, ...] = (
    f"DROP TABLE IF EXISTS {FTRACE_TABLE}",
    f"""CREATE TABLE {FTRACE_TABLE} (
    id BIGINT AUTO_INCREMENT PRIMARY KEY,
    connection_id INT NOT NULL,
    filename VARCHAR(255) NOT NULL,
    function_name VARCHAR(255) NOT NULL,
    object_type ENUM('function', 'procedure', 'statement', 'variable') NOT NULL,
    call_type ENUM('entry', 'exit', 'statement', 'set_variable') NOT NULL,
    arguments JSON,
    return_value JSON,
    call_depth INT NOT NULL DEFAULT 0,
    line_number INT,
    statement_type VARCHAR(50),
    variable_assignments JSON,
    timestamp TIMESTAMP(6) DEFAULT CURRENT_TIMESTAMP(6)
) ENGINE = ARCHIVE""",
    "DROP PROCEDURE IF EXISTS __record_ftrace_entry",
    "DROP PROCEDURE IF EXISTS __record_ftrace_exit",
    "DROP PROCEDURE IF EXISTS __record_ftrace_statement",
    "DROP PROCEDURE IF EXISTS __record_ftrace_set",
    "DROP FUNCTION IF EXISTS __get_call_depth",
    "DROP PROCEDURE IF EXISTS __increment_call_depth",
    "DROP PROCEDURE IF EXISTS __decrement_call_depth",
    """CREATE FUNCTION __get_call_depth() RETURNS INT READS SQL DATA DETERMINISTIC
BEGIN
    DECLARE depth INT DEFAULT 0;
    SELECT COALESCE(@__ftrace_call_depth, 0) INTO depth;
    RETURN depth;
END""",
    """CREATE PROCEDURE __increment_call_depth()
BEGIN
    SET @__ftrace_call_depth = COALESCE(@__ftrace_call_depth, 0) + 1;
END""",
    """CREATE PROCEDURE __decrement_call_depth()
BEGIN
    SET @__ftrace_call_depth = GREATEST(COALESCE(@__ftrace_call_depth, 0) - 1, 0);
END""",
    f"""CREATE PROCEDURE __record_ftrace_entry(IN filename VARCHAR(255), IN function_name VARCHAR(255), IN object_type VARCHAR(10), IN arguments JSON)
BEGIN
    CALL __increment_call_depth();
    INSERT INTO {FTRACE_TABLE} (connection_id, filename, function_name, object_type, call_type, arguments, call_depth)
    VALUES (CONNECTION_ID(), filename, function_name, object_type, 'entry', arguments, __get_call_depth());
END""",
    f"""CREATE PROCEDURE __record_ftrace_exit(IN filename VARCHAR(255), IN function_name VARCHAR(255), IN object_type VARCHAR(10), IN return_value JSON)
BEGIN
    INSERT INTO {FTRACE_TABLE} (connection_id, filename, function_name, object_type, call_type, return_value, call_depth)
    VALUES (CONNECTION_ID(), filename, function_name, object_type, 'exit', return_value, __get_call_depth());
    CALL __decrement_call_depth();
END""",
    f"""CREATE PROCEDURE __record_ftrace_statement(IN filename VARCHAR(255), IN function_name VARCHAR(255), IN line_number INT, IN statement_type VARCHAR(50), IN statement_text TEXT)
BEGIN
    INSERT INTO {FTRACE_TABLE} (connection_id, filename, function_name, object_type, call_type, call_depth, line_number, statement_type, return_value)
    VALUES (CONNECTION_ID(), filename, function_name, 'statement', 'statement', __get_call_depth(), line_number, statement_type, JSON_QUOTE(statement_text));
END""",
    f"""CREATE PROCEDURE __record_ftrace_set(IN filename VARCHAR(255), IN function_name VARCHAR(255), IN line_number INT, IN variable_assignments JSON)
BEGIN
    INSERT INTO {FTRACE_TABLE} (connection_id, filename, function_name, object_type, call_type, call_depth, line_number, statement_type, variable_assignments)
    VALUES (CONNECTION_ID(), filename, function_name, 'variable', 'set_variable', __get_call_depth(), line_number, 'SET', variable_assignments);
END""",
)


def created_objects(schema: tuple[str, ...]) -> list[str]:
    """Names of the objects a schema creates, in creation order."""
    names = []
    for statement in schema:
        words = statement.split(None, 3)
        if words[0].upper() == "CREATE":
            names.append(words[2].split("(", 1)[0])
    return names


def install_coverage_schema(db: Database) -> list[str]:
    db.execute_script(COVERAGE_SCHEMA, operation="install coverage schema")
    log.info("coverage_schema_installed")
    return created_objects(COVERAGE_SCHEMA)


def install_ftrace_schema(db: Database) -> list[str]:
    db.execute_script(FTRACE_SCHEMA, operation="install ftrace schema")
    log.info("ftrace_schema_installed")
    return created_objects(FTRACE_SCHEMA)
