import re
from typing import List, Optional, Tuple

from prismaforge.constants import (
    CONSTRAINT_KEYWORDS,
    IDENTITY_SERIAL_TYPES,
    TYPE_ALIASES,
    ConstraintKind,
    SegmentKind,
    Severity,
    StatementKind,
)
from prismaforge.exceptions import StrictModeError
from prismaforge.logging_config import get_logger
from prismaforge.models import (
    Column,
    Constraint,
    Diagnostic,
    EnumType,
    Index,
    ParseResult,
    Table,
)
from prismaforge.parsers.base import BaseParser
from prismaforge.parsers.utils import (
    IDENT,
    QUALIFIED_IDENT,
    clean_identifier,
    find_closing_paren,
    normalize_whitespace,
    parse_identifier_list,
    split_qualified,
    split_statements,
    split_top_level,
    unquote_literal,
)

_FLAGS = re.IGNORECASE | re.DOTALL

STATEMENT_PATTERNS = (
    (StatementKind.CREATE_ENUM, re.compile(r'^CREATE\s+TYPE\b.*\bAS\s+ENUM\b', _FLAGS)),
    (StatementKind.CREATE_TABLE, re.compile(
        r'^CREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:(?:TEMP|TEMPORARY|UNLOGGED)\s+)?TABLE\b', _FLAGS)),
    (StatementKind.ALTER_TABLE_ADD_FK, re.compile(r'^ALTER\s+TABLE\b.*\bADD\b.*\bFOREIGN\s+KEY\b', _FLAGS)),
    (StatementKind.CREATE_INDEX, re.compile(r'^CREATE\s+(?:UNIQUE\s+)?INDEX\b', _FLAGS)),
    (StatementKind.COMMENT_ON, re.compile(r'^COMMENT\s+ON\s+(?:TABLE|COLUMN)\b', _FLAGS)),
)

CREATE_ENUM_RE = re.compile(
    rf'^CREATE\s+TYPE\s+({QUALIFIED_IDENT})\s+AS\s+ENUM\s*\((.*)\)$', _FLAGS)

CREATE_TABLE_RE = re.compile(
    r'^CREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:(?:TEMP|TEMPORARY|UNLOGGED)\s+)?TABLE\s+'
    rf'(?:IF\s+NOT\s+EXISTS\s+)?({QUALIFIED_IDENT})\s*\(', _FLAGS)

COLUMN_RE = re.compile(rf'^({IDENT})\s+(.+)$', _FLAGS)

COLUMN_TYPE_RE = re.compile(
    rf'^((?:{IDENT}\s*\.\s*)?{IDENT}(?:\s+(?:VARYING|PRECISION)\b)?)'
    r'\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?'
    r'((?:\s+WITH(?:OUT)?\s+TIME\s+ZONE\b)?)'
    r'((?:\s*\[\s*\d*\s*\])*)', _FLAGS)

DEFAULT_RE = re.compile(
    r"\bDEFAULT\s+("
    r"'(?:[^']|'')*'(?:::\w+(?:\[\])?)?"              # 'literal'::cast
    r"|\((?:[^()]|\([^()]*\))*\)(?:::\w+(?:\[\])?)?"  # (expr(...))::cast
    r"|[\w.]+\((?:[^()]|\([^()]*\))*\)(?:::\w+)?"     # fn(args)::cast
    r"|[^,\s]+"                                       # single token
    r")", _FLAGS)

PRIMARY_KEY_RE = re.compile(r'\bPRIMARY\s+KEY\b', re.IGNORECASE)
UNIQUE_RE = re.compile(r'\bUNIQUE\b', re.IGNORECASE)
NOT_NULL_RE = re.compile(r'\bNOT\s+NULL\b', re.IGNORECASE)
IDENTITY_RE = re.compile(r'\bGENERATED\s+(?:ALWAYS|BY\s+DEFAULT)\s+AS\s+IDENTITY\b', re.IGNORECASE)
CHECK_RE = re.compile(r'\bCHECK\s*\(', re.IGNORECASE)

REFERENCES_RE = re.compile(
    rf'\bREFERENCES\s+({QUALIFIED_IDENT})\s*(?:\(([^)]*)\))?', _FLAGS)

FOREIGN_KEY_RE = re.compile(
    rf'^FOREIGN\s+KEY\s*\(([^)]*)\)\s*REFERENCES\s+({QUALIFIED_IDENT})\s*(?:\(([^)]*)\))?(.*)$', _FLAGS)

ACTION_RE = re.compile(
    r'\bON\s+(DELETE|UPDATE)\s+(CASCADE|RESTRICT|NO\s+ACTION|SET\s+NULL|SET\s+DEFAULT)\b', re.IGNORECASE)

NAMED_CONSTRAINT_RE = re.compile(rf'^CONSTRAINT\s+({IDENT})\s+(.*)$', _FLAGS)

ALTER_TABLE_RE = re.compile(
    rf'^ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?({QUALIFIED_IDENT})\s+(.*)$', _FLAGS)

ADD_FOREIGN_KEY_RE = re.compile(
    rf'^ADD\s+(?:CONSTRAINT\s+({IDENT})\s+)?(FOREIGN\s+KEY\b.*)$', _FLAGS)

CREATE_INDEX_RE = re.compile(
    r'^CREATE\s+(UNIQUE\s+)?INDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?'
    rf'(?:({QUALIFIED_IDENT})\s+)?ON\s+(?:ONLY\s+)?({QUALIFIED_IDENT})\s*'
    r'(?:USING\s+(\w+)\s*)?\(', _FLAGS)

INDEX_COLUMN_RE = re.compile(rf'^({IDENT})(?:\s+.*)?$', _FLAGS)

COMMENT_RE = re.compile(
    rf"^COMMENT\s+ON\s+(TABLE|COLUMN)\s+({QUALIFIED_IDENT})\s+IS\s+(NULL|'(?:[^']|'')*')$", _FLAGS)


class PostgresParser(BaseParser):
    """
    Parses the PostgreSQL DDL subset into a ParseResult.

    The document is segmented once and then walked in five passes so that
    every later pass sees the complete output of the earlier ones: enums,
    tables, ALTER TABLE foreign keys, indexes, comments.
    """

    def __init__(self, strict: bool = False):
        super().__init__(strict)
        self.logger = get_logger("parser")

    def parse(self, sql_content: str) -> ParseResult:
        result = ParseResult()
        classified = [(self.classify_statement(s), s) for s in split_statements(sql_content)]

        for kind, statement in classified:
            if kind == StatementKind.UNRECOGNIZED:
                self.logger.debug(f"Skipping unrecognized statement: {statement[:60]}")

        passes = (
            (StatementKind.CREATE_ENUM, self._process_create_enum),
            (StatementKind.CREATE_TABLE, self._process_create_table),
            (StatementKind.ALTER_TABLE_ADD_FK, self._process_alter_table),
            (StatementKind.CREATE_INDEX, self._process_create_index),
            (StatementKind.COMMENT_ON, self._process_comment),
        )
        for pass_kind, handler in passes:
            for kind, statement in classified:
                if kind == pass_kind:
                    handler(statement, result)
            if pass_kind == StatementKind.ALTER_TABLE_ADD_FK:
                self._resolve_referenced_columns(result)

        self.logger.info(
            f"Parsed {len(result.tables)} tables and {len(result.enums)} enums "
            f"({len(result.diagnostics)} diagnostics)"
        )
        return result

    def classify_statement(self, statement: str) -> StatementKind:
        for kind, pattern in STATEMENT_PATTERNS:
            if pattern.match(statement):
                return kind
        return StatementKind.UNRECOGNIZED

    def _report(self, result: ParseResult, message: str, statement: str,
                table_name: Optional[str] = None, operation: Optional[str] = None,
                severity: Severity = Severity.WARNING):
        if self.strict:
            raise StrictModeError(statement, message)
        result.diagnostics.append(Diagnostic(severity=severity, message=message, statement=statement))
        extra = {'statement': statement}
        if table_name:
            extra['table_name'] = table_name
        if operation:
            extra['operation'] = operation
        self.logger.warning(message, extra=extra)

    # Enums

    def _process_create_enum(self, statement: str, result: ParseResult):
        enum_type = self.parse_enum(statement)
        if enum_type is None:
            self._report(result, "Malformed CREATE TYPE ... AS ENUM statement", statement,
                         operation='create_enum')
            return
        if result.get_enum(enum_type.name):
            self._report(result, f"Duplicate enum '{enum_type.name}' ignored", statement,
                         operation='create_enum')
            return
        result.enums.append(enum_type)

    def parse_enum(self, statement: str) -> Optional[EnumType]:
        match = CREATE_ENUM_RE.match(statement)
        if not match:
            return None
        values = tuple(unquote_literal(v) for v in split_top_level(match.group(2)))
        return EnumType(name=clean_identifier(match.group(1)), values=tuple(v for v in values if v))

    # Tables

    def _process_create_table(self, statement: str, result: ParseResult):
        table = self.parse_table(statement, result)
        if table is None:
            return
        if result.get_table(table.name):
            self._report(result, f"Duplicate table '{table.name}' ignored", statement,
                         table_name=table.name, operation='create_table')
            return
        result.tables.append(table)

    def parse_table(self, statement: str, result: ParseResult) -> Optional[Table]:
        match = CREATE_TABLE_RE.match(statement)
        if not match:
            self._report(result, "Could not locate table name or column list", statement,
                         operation='create_table', severity=Severity.ERROR)
            return None

        table_name = clean_identifier(match.group(1))
        open_index = match.end() - 1
        close_index = find_closing_paren(statement, open_index)
        if close_index == -1:
            self._report(result, f"Unbalanced parentheses in CREATE TABLE {table_name}", statement,
                         table_name=table_name, operation='create_table', severity=Severity.ERROR)
            return None

        table = Table(name=table_name)
        self.logger.debug(f"Extracted table name: {table_name}")

        body = statement[open_index + 1:close_index]
        handlers = {
            SegmentKind.COLUMN: self._parse_column,
            SegmentKind.CONSTRAINT: self._parse_table_constraint,
            SegmentKind.IGNORED: self._skip_segment,
        }
        for segment in split_top_level(body):
            handlers[self.classify_segment(segment)](segment, table, result)

        self._apply_key_constraints(table)
        return table

    def classify_segment(self, segment: str) -> SegmentKind:
        if segment.startswith('"'):
            return SegmentKind.COLUMN
        if re.match(r'^(?:LIKE\s|EXCLUDE\s*(?:USING\b|\())', segment, re.IGNORECASE):
            return SegmentKind.IGNORED
        leading = re.match(r'^[A-Za-z_][A-Za-z0-9_$]*', segment)
        if leading and leading.group(0).upper() in CONSTRAINT_KEYWORDS:
            return SegmentKind.CONSTRAINT
        return SegmentKind.COLUMN

    def _skip_segment(self, segment: str, table: Table, result: ParseResult):
        self.logger.debug(f"Skipping table element: {segment[:60]}", extra={'table_name': table.name})

    def _parse_column(self, segment: str, table: Table, result: ParseResult):
        match = COLUMN_RE.match(segment)
        type_match = COLUMN_TYPE_RE.match(match.group(2)) if match else None
        if not type_match:
            self._report(result, f"Could not parse column definition '{segment[:60]}'", segment,
                         table_name=table.name, operation='parse_column')
            return

        name = clean_identifier(match.group(1))
        if table.get_column(name):
            self._report(result, f"Duplicate column '{name}' ignored", segment,
                         table_name=table.name, operation='parse_column')
            return

        data_type, is_enum = self._resolve_type(type_match.group(1), type_match.group(4), result)
        options = match.group(2)[type_match.end():]
        flags = self._mask_nested(options)

        column = Column(
            name=name,
            data_type=data_type,
            length=int(type_match.group(2)) if type_match.group(2) else None,
            scale=int(type_match.group(3)) if type_match.group(3) else None,
            is_array=bool(type_match.group(5).strip()),
            is_enum=is_enum,
        )

        if PRIMARY_KEY_RE.search(flags):
            column.is_primary_key = True
        column.is_unique = column.is_primary_key or bool(UNIQUE_RE.search(flags))
        column.is_nullable = not (column.is_primary_key or NOT_NULL_RE.search(flags))

        if IDENTITY_RE.search(flags):
            column.is_identity = True
            column.data_type = IDENTITY_SERIAL_TYPES.get(column.data_type, column.data_type)

        # Keyword positions come from the masked text; masking keeps offsets intact
        default_match = self._match_keyword(DEFAULT_RE, options, flags, 'DEFAULT')
        if default_match:
            column.default_value = default_match.group(1).strip()

        references = self._match_keyword(REFERENCES_RE, options, flags, 'REFERENCES')
        if references:
            table.constraints.append(Constraint(
                kind=ConstraintKind.FOREIGN_KEY,
                columns=[column.name],
                referenced_table=clean_identifier(references.group(1)),
                referenced_columns=parse_identifier_list(references.group(2) or ''),
                **self._parse_actions(flags[references.end():]),
            ))

        check = self._match_keyword(CHECK_RE, options, flags, 'CHECK')
        if check:
            expression = self._parenthesized(options, check.end() - 1)
            if expression is not None:
                table.constraints.append(Constraint(
                    kind=ConstraintKind.CHECK, columns=[column.name], expression=expression))

        table.columns.append(column)

    def _match_keyword(self, pattern, options: str, flags: str, keyword: str):
        for found in re.finditer(rf'\b{keyword}\b', flags, re.IGNORECASE):
            # GENERATED BY DEFAULT AS IDENTITY is not a default value
            if keyword == 'DEFAULT' and re.search(r'\bBY\s+$', flags[:found.start()], re.IGNORECASE):
                continue
            return pattern.match(options, found.start())
        return None

    def _resolve_type(self, raw_type: str, time_zone: str, result: ParseResult) -> Tuple[str, bool]:
        if re.search(r'\s(?:VARYING|PRECISION)$', raw_type, re.IGNORECASE):
            type_name = normalize_whitespace(raw_type).upper()
        else:
            type_name = clean_identifier(raw_type)

        enum_type = result.get_enum(type_name)
        if enum_type is not None and not time_zone:
            return enum_type.name, True

        type_name = type_name.upper()
        if time_zone:
            type_name = f"{type_name} {normalize_whitespace(time_zone).upper()}"
        return TYPE_ALIASES.get(type_name, type_name), False

    def _parse_table_constraint(self, segment: str, table: Table, result: ParseResult):
        name = None
        body = segment
        named = NAMED_CONSTRAINT_RE.match(segment)
        if named:
            name = clean_identifier(named.group(1))
            body = named.group(2).strip()

        upper = body.upper()
        if upper.startswith('FOREIGN'):
            constraint = self._parse_foreign_key(body, name)
        elif upper.startswith('PRIMARY'):
            constraint = self._parse_column_list_constraint(
                body, r'^PRIMARY\s+KEY\s*\(', ConstraintKind.PRIMARY_KEY, name)
        elif upper.startswith('UNIQUE'):
            constraint = self._parse_column_list_constraint(
                body, r'^UNIQUE\s*(?:NULLS\s+(?:NOT\s+)?DISTINCT\s*)?\(', ConstraintKind.UNIQUE, name)
        elif upper.startswith('CHECK'):
            expression = self._parenthesized(body, body.find('('))
            constraint = Constraint(kind=ConstraintKind.CHECK, name=name, expression=expression) \
                if expression is not None else None
        else:
            constraint = None

        if constraint is None:
            self._report(result, f"Could not parse constraint '{segment[:60]}'", segment,
                         table_name=table.name, operation='parse_constraint')
            return
        table.constraints.append(constraint)

    def _parse_column_list_constraint(self, body: str, prefix: str, kind: ConstraintKind,
                                      name: Optional[str]) -> Optional[Constraint]:
        match = re.match(prefix, body, re.IGNORECASE)
        if not match:
            return None
        inner = self._parenthesized(body, match.end() - 1)
        columns = parse_identifier_list(inner or '')
        if not columns:
            return None
        return Constraint(kind=kind, name=name, columns=columns)

    def _parse_foreign_key(self, text: str, name: Optional[str]) -> Optional[Constraint]:
        match = FOREIGN_KEY_RE.match(text.strip())
        if not match:
            return None
        columns = parse_identifier_list(match.group(1))
        referenced_columns = parse_identifier_list(match.group(3) or '')
        if not columns or (referenced_columns and len(referenced_columns) != len(columns)):
            return None
        return Constraint(
            kind=ConstraintKind.FOREIGN_KEY,
            name=name,
            columns=columns,
            referenced_table=clean_identifier(match.group(2)),
            referenced_columns=referenced_columns,
            **self._parse_actions(match.group(4)),
        )

    def _parse_actions(self, text: str) -> dict:
        actions = {}
        for event, action in ACTION_RE.findall(text):
            key = 'on_delete' if event.upper() == 'DELETE' else 'on_update'
            actions.setdefault(key, normalize_whitespace(action).upper())
        return actions

    def _apply_key_constraints(self, table: Table):
        for constraint in table.constraints:
            if constraint.kind not in (ConstraintKind.PRIMARY_KEY, ConstraintKind.UNIQUE):
                continue
            single = len(constraint.columns) == 1
            for col_name in constraint.columns:
                column = table.get_column(col_name)
                if column is None:
                    continue
                if constraint.kind == ConstraintKind.PRIMARY_KEY:
                    column.is_primary_key = True
                    column.is_nullable = False
                if single:
                    column.is_unique = True

    # Deferred foreign keys

    def _process_alter_table(self, statement: str, result: ParseResult):
        match = ALTER_TABLE_RE.match(statement)
        if not match:
            self._report(result, "Malformed ALTER TABLE ... ADD FOREIGN KEY statement", statement,
                         operation='alter_table')
            return

        table_name = clean_identifier(match.group(1))
        table = result.get_table(table_name)

        for action in split_top_level(match.group(2)):
            if not re.match(r'^ADD\b', action, re.IGNORECASE) or not re.search(r'\bFOREIGN\s+KEY\b', action, re.IGNORECASE):
                continue
            add_match = ADD_FOREIGN_KEY_RE.match(action)
            constraint = None
            if add_match:
                name = clean_identifier(add_match.group(1)) if add_match.group(1) else None
                constraint = self._parse_foreign_key(add_match.group(2), name)
            if constraint is None:
                self._report(result, f"Malformed foreign key clause '{action[:60]}'", statement,
                             table_name=table_name, operation='alter_table')
                continue
            if table is None:
                # The owning table is unknown at this point; dropped without a diagnostic
                self.logger.debug(f"Dropping foreign key on unknown table {table_name}",
                                  extra={'table_name': table_name, 'operation': 'alter_table'})
                continue
            table.constraints.append(constraint)

    def _resolve_referenced_columns(self, result: ParseResult):
        """Fills in `REFERENCES t` without a column list from t's primary key."""
        for table in result.tables:
            for constraint in table.foreign_keys:
                if constraint.referenced_columns:
                    continue
                referenced = result.get_table(constraint.referenced_table)
                primary_key = referenced.primary_key_columns if referenced else []
                if len(primary_key) == len(constraint.columns):
                    constraint.referenced_columns = list(primary_key)
                elif len(constraint.columns) == 1:
                    constraint.referenced_columns = ['id']
                else:
                    self._report(
                        result,
                        f"Cannot resolve referenced columns of foreign key "
                        f"({', '.join(constraint.columns)}) -> {constraint.referenced_table}",
                        f"FOREIGN KEY ({', '.join(constraint.columns)}) REFERENCES {constraint.referenced_table}",
                        table_name=table.name, operation='link_foreign_key')

    # Indexes and comments

    def _process_create_index(self, statement: str, result: ParseResult):
        match = CREATE_INDEX_RE.match(statement)
        if not match:
            self._report(result, "Malformed CREATE INDEX statement", statement, operation='create_index')
            return

        table = result.get_table(clean_identifier(match.group(3)))
        inner = self._parenthesized(statement, match.end() - 1)
        if table is None or inner is None:
            return

        columns = []
        for part in split_top_level(inner):
            col_match = INDEX_COLUMN_RE.match(part)
            column = table.get_column(clean_identifier(col_match.group(1))) if col_match else None
            if column is None or '(' in part:
                self.logger.debug(f"Skipping index on unknown column or expression '{part}'",
                                  extra={'table_name': table.name, 'operation': 'create_index'})
                return
            columns.append(column.name)

        if not columns:
            return
        table.indexes.append(Index(
            columns=columns,
            name=clean_identifier(match.group(2)) if match.group(2) else None,
            is_unique=bool(match.group(1)),
            method=match.group(4).lower() if match.group(4) else None,
        ))

    def _process_comment(self, statement: str, result: ParseResult):
        match = COMMENT_RE.match(statement)
        if not match:
            self._report(result, "Malformed COMMENT ON statement", statement, operation='comment')
            return

        target = match.group(1).upper()
        parts = split_qualified(match.group(2))
        text = None if match.group(3).upper() == 'NULL' else unquote_literal(match.group(3))

        if target == 'TABLE':
            table = result.get_table(parts[-1])
            if table:
                table.comment = text
            return

        if len(parts) < 2:
            self._report(result, "COMMENT ON COLUMN requires table.column", statement, operation='comment')
            return
        table = result.get_table(parts[-2])
        column = table.get_column(parts[-1]) if table else None
        if column:
            column.comment = text

    # Helpers

    def _parenthesized(self, text: str, open_index: int) -> Optional[str]:
        if open_index < 0 or open_index >= len(text) or text[open_index] != '(':
            return None
        close_index = find_closing_paren(text, open_index)
        if close_index == -1:
            return None
        return text[open_index + 1:close_index].strip()

    def _mask_nested(self, text: str) -> str:
        """Blanks out quoted strings and parenthesized groups so keyword checks only see top-level words."""
        masked = []
        depth = 0
        quote_char = None
        for char in text:
            if quote_char:
                if char == quote_char:
                    quote_char = None
                masked.append(' ')
                continue
            if char in ("'", '"'):
                quote_char = char
                masked.append(' ')
            elif char == '(':
                depth += 1
                masked.append(' ')
            elif char == ')':
                depth = max(depth - 1, 0)
                masked.append(' ')
            else:
                masked.append(' ' if depth else char)
        return "".join(masked)
