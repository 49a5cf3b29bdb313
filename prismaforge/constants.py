"""
PrismaForge Constants

Centralized definitions for SQL keywords, type tables and the closed variant
sets used by the parser and the Prisma generator.
"""

from enum import Enum
from typing import Dict, FrozenSet


class ConstraintKind(str, Enum):
    """Table-level constraint kinds."""

    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"


class SegmentKind(str, Enum):
    """Classification of one comma-separated entry of a CREATE TABLE body."""

    COLUMN = "COLUMN"
    CONSTRAINT = "CONSTRAINT"
    IGNORED = "IGNORED"  # LIKE ..., EXCLUDE ...


class StatementKind(str, Enum):
    """Statements of the supported DDL subset."""

    CREATE_ENUM = "CREATE TYPE AS ENUM"
    CREATE_TABLE = "CREATE TABLE"
    ALTER_TABLE_ADD_FK = "ALTER TABLE ADD FOREIGN KEY"
    CREATE_INDEX = "CREATE INDEX"
    COMMENT_ON = "COMMENT ON"
    UNRECOGNIZED = "UNRECOGNIZED"


class DefaultKind(str, Enum):
    """Shapes of a column DEFAULT expression."""

    AUTOINCREMENT = "autoincrement"
    NOW = "now"
    UUID = "uuid"
    BOOLEAN = "boolean"
    NUMBER = "number"
    JSON = "json"
    NULL = "null"
    EMPTY_LIST = "empty_list"
    ENUM_VALUE = "enum_value"
    STRING = "string"
    LITERAL = "literal"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Provider(str, Enum):
    """Datasource providers the generated schema may target."""

    POSTGRESQL = "postgresql"
    COCKROACHDB = "cockroachdb"


# Leading words that make a CREATE TABLE body entry a table-level constraint
CONSTRAINT_KEYWORDS: FrozenSet[str] = frozenset({
    "CONSTRAINT", "PRIMARY", "FOREIGN", "UNIQUE", "CHECK",
})

# Multi-word and alias type names folded to one canonical token
TYPE_ALIASES: Dict[str, str] = {
    "CHARACTER VARYING": "VARCHAR",
    "CHARACTER": "CHAR",
    "DOUBLE PRECISION": "DOUBLE",
    "TIMESTAMP WITH TIME ZONE": "TIMESTAMPTZ",
    "TIMESTAMP WITHOUT TIME ZONE": "TIMESTAMP",
    "TIME WITH TIME ZONE": "TIMETZ",
    "TIME WITHOUT TIME ZONE": "TIME",
    "INT4": "INTEGER",
    "SERIAL4": "SERIAL",
    "SERIAL8": "BIGSERIAL",
    "SERIAL2": "SMALLSERIAL",
}

# Integer types rewritten to their serial marker when declared as IDENTITY
IDENTITY_SERIAL_TYPES: Dict[str, str] = {
    "INTEGER": "SERIAL",
    "INT": "SERIAL",
    "BIGINT": "BIGSERIAL",
    "INT8": "BIGSERIAL",
    "SMALLINT": "SMALLSERIAL",
    "INT2": "SMALLSERIAL",
}

SERIAL_TYPES: FrozenSet[str] = frozenset({"SERIAL", "BIGSERIAL", "SMALLSERIAL"})

TIMESTAMP_TYPES: FrozenSet[str] = frozenset({"TIMESTAMP", "TIMESTAMPTZ"})

SCALAR_TYPE_MAP: Dict[str, str] = {
    "SERIAL": "Int",
    "SMALLSERIAL": "Int",
    "INTEGER": "Int",
    "INT": "Int",
    "INT2": "Int",
    "SMALLINT": "Int",
    "BIGSERIAL": "BigInt",
    "BIGINT": "BigInt",
    "INT8": "BigInt",
    "VARCHAR": "String",
    "TEXT": "String",
    "CHAR": "String",
    "CITEXT": "String",
    "UUID": "String",
    "INET": "String",
    "CIDR": "String",
    "MACADDR": "String",
    "XML": "String",
    "BOOLEAN": "Boolean",
    "BOOL": "Boolean",
    "TIMESTAMP": "DateTime",
    "TIMESTAMPTZ": "DateTime",
    "DATE": "DateTime",
    "TIME": "DateTime",
    "TIMETZ": "DateTime",
    "DECIMAL": "Decimal",
    "NUMERIC": "Decimal",
    "MONEY": "Decimal",
    "FLOAT": "Float",
    "FLOAT4": "Float",
    "FLOAT8": "Float",
    "REAL": "Float",
    "DOUBLE": "Float",
    "JSON": "Json",
    "JSONB": "Json",
    "BYTEA": "Bytes",
}

FALLBACK_SCALAR_TYPE = "String"

# Native type attributes that take no arguments
NATIVE_TYPE_ATTRIBUTES: Dict[str, str] = {
    "UUID": "@db.Uuid",
    "JSONB": "@db.JsonB",
    "JSON": "@db.Json",
    "TIMESTAMPTZ": "@db.Timestamptz",
    "DATE": "@db.Date",
    "TIME": "@db.Time",
}

# Native type attributes parameterised by the column's length qualifier
SIZED_NATIVE_TYPES: Dict[str, str] = {
    "VARCHAR": "VarChar",
    "CHAR": "Char",
    "NUMERIC": "Decimal",
    "DECIMAL": "Decimal",
}

REFERENTIAL_ACTIONS: Dict[str, str] = {
    "CASCADE": "Cascade",
    "RESTRICT": "Restrict",
    "NO ACTION": "NoAction",
    "SET NULL": "SetNull",
    "SET DEFAULT": "SetDefault",
}

INDEX_METHODS: Dict[str, str] = {
    "HASH": "Hash",
    "GIN": "Gin",
    "GIST": "Gist",
    "SPGIST": "SpGist",
    "BRIN": "Brin",
}

NOW_FUNCTIONS: FrozenSet[str] = frozenset({
    "CURRENT_TIMESTAMP", "NOW()", "(NOW())", "LOCALTIMESTAMP", "CURRENT_TIMESTAMP()",
})

UUID_FUNCTIONS = ("gen_random_uuid", "uuid_generate_v4")
