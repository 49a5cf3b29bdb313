import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from prismaforge.constants import (
    FALLBACK_SCALAR_TYPE,
    INDEX_METHODS,
    NATIVE_TYPE_ATTRIBUTES,
    NOW_FUNCTIONS,
    REFERENTIAL_ACTIONS,
    SCALAR_TYPE_MAP,
    SERIAL_TYPES,
    SIZED_NATIVE_TYPES,
    TIMESTAMP_TYPES,
    UUID_FUNCTIONS,
    ConstraintKind,
    DefaultKind,
    Provider,
)
from prismaforge.exceptions import GenerationError
from prismaforge.generators.base import BaseGenerator
from prismaforge.logging_config import get_logger
from prismaforge.models import (
    Column,
    Constraint,
    EnumType,
    EnumValue,
    Field,
    Model,
    ParseResult,
    PrismaEnum,
    Table,
)
from prismaforge.naming import (
    backward_field_base,
    foreign_key_context,
    forward_field_base,
    model_name_for_table,
    relation_name,
    select_naming_column,
    to_camel_case,
    to_pascal_case,
    unique_field_name,
)
from prismaforge.parsers.utils import find_closing_paren, unquote_literal

NUMBER_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')
STRING_LITERAL_RE = re.compile(r"^('(?:[^']|'')*')(?:::[\w ]+(?:\[\])?)?$")
ENUM_IDENTIFIER_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')
NUMERIC_SCALARS = frozenset({"Int", "BigInt", "Float", "Decimal"})


@dataclass(frozen=True)
class GeneratorOptions:
    provider: str = Provider.POSTGRESQL.value
    url_env: str = "DATABASE_URL"
    client_provider: str = "prisma-client-js"
    header_comment: str = "Generated Prisma schema"

    def validate(self):
        allowed = {p.value for p in Provider}
        if self.provider not in allowed:
            raise GenerationError(
                f"Unsupported provider '{self.provider}'. Expected one of: {', '.join(sorted(allowed))}")
        if not self.url_env:
            raise GenerationError("url_env must not be empty")


@dataclass(frozen=True)
class DefaultValue:
    kind: DefaultKind
    value: Optional[str] = None


def strip_outer_parens(text: str) -> str:
    text = text.strip()
    while text.startswith('(') and find_closing_paren(text, 0) == len(text) - 1:
        text = text[1:-1].strip()
    return text


def classify_default(column: Column, scalar_type: str, enum: Optional[PrismaEnum] = None) -> Optional[DefaultValue]:
    """Maps a column's DEFAULT expression onto one DefaultKind."""
    if column.data_type in SERIAL_TYPES:
        return DefaultValue(DefaultKind.AUTOINCREMENT)
    if column.default_value is None:
        return None
    if column.is_array:
        # List fields only take list defaults; only the empty array literal maps onto one
        literal = STRING_LITERAL_RE.match(strip_outer_parens(column.default_value))
        if literal and unquote_literal(literal.group(1)).strip() == "{}":
            return DefaultValue(DefaultKind.EMPTY_LIST)
        return None

    raw = column.default_value.strip()
    bare = strip_outer_parens(raw)
    upper = bare.upper()
    lower = bare.lower()

    if upper in NOW_FUNCTIONS or raw.upper() in NOW_FUNCTIONS:
        return DefaultValue(DefaultKind.NOW)
    if lower.startswith("nextval("):
        return DefaultValue(DefaultKind.AUTOINCREMENT)
    if any(fn in lower for fn in UUID_FUNCTIONS):
        return DefaultValue(DefaultKind.UUID, bare)
    if lower in ("true", "false"):
        return DefaultValue(DefaultKind.BOOLEAN, lower)
    if NUMBER_RE.match(bare):
        return DefaultValue(DefaultKind.NUMBER, bare)
    if "NOW()" in upper or "CURRENT_TIMESTAMP" in upper:
        return DefaultValue(DefaultKind.NOW)
    if "::JSON" in upper:
        return DefaultValue(DefaultKind.JSON, bare)
    if upper == "NULL" or upper.startswith("NULL::"):
        return DefaultValue(DefaultKind.NULL)

    string = STRING_LITERAL_RE.match(bare)
    if string:
        text = unquote_literal(string.group(1))
        if enum is not None:
            for value in enum.values:
                if (value.mapped_from or value.name) == text:
                    return DefaultValue(DefaultKind.ENUM_VALUE, value.name)
            return DefaultValue(DefaultKind.LITERAL, text)
        if scalar_type in NUMERIC_SCALARS and NUMBER_RE.match(text):
            return DefaultValue(DefaultKind.NUMBER, text)
        if scalar_type == "Boolean" and text.lower() in ("true", "false"):
            return DefaultValue(DefaultKind.BOOLEAN, text.lower())
        return DefaultValue(DefaultKind.STRING, text)

    return DefaultValue(DefaultKind.LITERAL, raw)


class PrismaGenerator(BaseGenerator):
    """
    Renders a ParseResult as a Prisma schema.

    Models are built in two passes. The first converts every table into a
    scalar-only Model. The second folds each foreign key into a new set of
    models, adding a forward field to the owning model and a backward list
    field to the referenced one. Models are frozen; the fold only rebinds.
    """

    def __init__(self, options: Optional[GeneratorOptions] = None):
        self.options = options or GeneratorOptions()
        self.options.validate()
        self.logger = get_logger("generator")

    def generate(self, parse_result: ParseResult) -> str:
        enums = self.build_enums(parse_result.enums)
        models = self.build_models(parse_result, enums)

        blocks = [self.render_header()]
        blocks.extend(self.render_enum(e) for e in enums)
        blocks.extend(self.render_model(m) for m in models)
        self.logger.info(f"Generated {len(models)} models and {len(enums)} enums")
        return "\n\n".join(blocks) + "\n"

    # Enums

    def build_enums(self, enums: List[EnumType]) -> List[PrismaEnum]:
        return [self.convert_enum(e) for e in enums]

    def convert_enum(self, enum_type: EnumType) -> PrismaEnum:
        name = to_pascal_case(enum_type.name)
        values = []
        taken = set()
        for raw in enum_type.values:
            if ENUM_IDENTIFIER_RE.match(raw):
                value = EnumValue(name=raw)
            else:
                sanitized = re.sub(r'[^A-Za-z0-9_]+', '_', raw).strip('_')
                if not sanitized or not sanitized[0].isalpha():
                    sanitized = f"VALUE_{sanitized}"
                value = EnumValue(name=sanitized, mapped_from=raw)
            if value.name in taken:
                self.logger.warning(f"Enum {name} value '{raw}' collides with '{value.name}', skipped")
                continue
            taken.add(value.name)
            values.append(value)
        return PrismaEnum(
            name=name,
            values=tuple(values),
            db_name=enum_type.name if name != enum_type.name else None,
        )

    # Models

    def build_models(self, parse_result: ParseResult, enums: Optional[List[PrismaEnum]] = None) -> List[Model]:
        if enums is None:
            enums = self.build_enums(parse_result.enums)
        enum_lookup = {self._enum_key(e): e for e in enums}
        model_names = self._assign_model_names(parse_result.tables, enums)

        models = {
            table.name.lower(): self.build_scalar_model(table, model_names[table.name.lower()], enum_lookup)
            for table in parse_result.tables
        }

        used: FrozenSet[str] = frozenset()
        for table in parse_result.tables:
            for constraint in table.foreign_keys:
                models, used = self._fold_relation(models, parse_result, table, constraint, used)

        return [models[table.name.lower()] for table in parse_result.tables]

    def _enum_key(self, enum: PrismaEnum) -> str:
        return (enum.db_name or enum.name).lower()

    def _assign_model_names(self, tables: List[Table], enums: List[PrismaEnum] = ()) -> Dict[str, str]:
        names = {}
        # Models and enums share one namespace
        taken = {e.name for e in enums}
        for table in tables:
            name = model_name_for_table(table.name)
            if name in taken:
                name = to_pascal_case(table.name)
            if name in taken:
                name = f"{name}Model"
            taken.add(name)
            names[table.name.lower()] = name
        return names

    def build_scalar_model(self, table: Table, model_name: str, enum_lookup: Dict[str, PrismaEnum]) -> Model:
        single_pk = len(table.primary_key_columns) == 1
        fields = tuple(self.convert_column(c, enum_lookup, single_pk) for c in table.columns)
        return Model(
            name=model_name,
            table_name=table.name,
            fields=fields,
            attributes=tuple(self._model_attributes(table, model_name)),
            comment=table.comment,
        )

    def convert_column(self, column: Column, enum_lookup: Dict[str, PrismaEnum], single_pk: bool = True) -> Field:
        name = to_camel_case(column.name)
        enum = enum_lookup.get(column.data_type.lower()) if column.is_enum else None
        field_type = enum.name if enum else SCALAR_TYPE_MAP.get(column.data_type, FALLBACK_SCALAR_TYPE)
        is_id = column.is_primary_key and single_pk

        attributes = []
        if is_id:
            attributes.append("@id")
        default = self.default_attribute(classify_default(column, field_type, enum))
        if default:
            attributes.append(default)
        if column.is_unique and not is_id:
            attributes.append("@unique")
        if column.data_type in TIMESTAMP_TYPES and "updated" in column.name.lower() and not column.is_array:
            attributes.append("@updatedAt")
        if column.name != name:
            attributes.append(f"@map({self.quote_string(column.name)})")
        if not enum:
            native = self._native_type_attribute(column)
            if native:
                attributes.append(native)

        return Field(
            name=name,
            type=field_type,
            attributes=tuple(attributes),
            is_optional=column.is_nullable and not column.is_array and not is_id,
            is_array=column.is_array,
            comment=column.comment,
        )

    def default_attribute(self, default: Optional[DefaultValue]) -> Optional[str]:
        if default is None:
            return None
        kind = default.kind
        if kind == DefaultKind.AUTOINCREMENT:
            return "@default(autoincrement())"
        if kind == DefaultKind.NOW:
            return "@default(now())"
        if kind == DefaultKind.EMPTY_LIST:
            return "@default([])"
        if kind in (DefaultKind.UUID, DefaultKind.JSON):
            return f"@default(dbgenerated({self.quote_string(default.value)}))"
        if kind in (DefaultKind.BOOLEAN, DefaultKind.NUMBER, DefaultKind.ENUM_VALUE):
            return f"@default({default.value})"
        if kind == DefaultKind.NULL:
            return None
        if kind in (DefaultKind.STRING, DefaultKind.LITERAL):
            return f"@default({self.quote_string(default.value)})"
        raise GenerationError(f"Unhandled default kind: {kind}")

    def _native_type_attribute(self, column: Column) -> Optional[str]:
        if column.data_type in NATIVE_TYPE_ATTRIBUTES:
            return NATIVE_TYPE_ATTRIBUTES[column.data_type]
        native = SIZED_NATIVE_TYPES.get(column.data_type)
        if native is None or column.length is None:
            return None
        if native == "Decimal":
            return f"@db.Decimal({column.length}, {column.scale or 0})"
        if native == "VarChar" and self.options.provider == Provider.COCKROACHDB.value:
            native = "String"
        return f"@db.{native}({column.length})"

    def _model_attributes(self, table: Table, model_name: str) -> List[str]:
        attributes = []
        primary_key = table.primary_key_columns
        if len(primary_key) > 1:
            attributes.append(f"@@id([{self._field_list(table, primary_key)}])")

        for constraint in table.constraints:
            if constraint.kind == ConstraintKind.UNIQUE and len(constraint.columns) > 1:
                attributes.append(f"@@unique([{self._field_list(table, constraint.columns)}])")

        for index in table.indexes:
            args = [f"[{self._field_list(table, index.columns)}]"]
            if index.name:
                args.append(f"map: {self.quote_string(index.name)}")
            if index.is_unique:
                attributes.append(f"@@unique({', '.join(args)})")
                continue
            method = INDEX_METHODS.get((index.method or '').upper())
            if method:
                args.append(f"type: {method}")
            attributes.append(f"@@index({', '.join(args)})")

        if model_name != table.name:
            attributes.append(f"@@map({self.quote_string(table.name)})")
        return attributes

    def _field_list(self, table: Table, columns: List[str]) -> str:
        names = []
        for col_name in columns:
            column = table.get_column(col_name)
            names.append(to_camel_case(column.name if column else col_name))
        return ", ".join(names)

    # Relations

    def _fold_relation(self, models: Dict[str, Model], parse_result: ParseResult, table: Table,
                       constraint: Constraint, used: FrozenSet[str]) -> Tuple[Dict[str, Model], FrozenSet[str]]:
        owning_key = table.name.lower()
        referenced_key = (constraint.referenced_table or '').lower()
        referenced_table = parse_result.get_table(referenced_key)
        if referenced_table is None or len(constraint.columns) != len(constraint.referenced_columns):
            self.logger.debug(
                f"Skipping relation {table.name}({', '.join(constraint.columns)}) -> {constraint.referenced_table}",
                extra={'table_name': table.name, 'operation': 'relation'})
            return models, used

        naming_column = select_naming_column(constraint)
        context = foreign_key_context(naming_column)
        owning = models[owning_key]
        name, used = relation_name(owning.name, models[referenced_key].name, context, table.name, used)

        forward = Field(
            name=unique_field_name(
                forward_field_base(naming_column, referenced_table.name),
                owning.field_names, naming_column, table.name),
            type=models[referenced_key].name,
            attributes=(self._relation_attribute(name, table, referenced_table, constraint),),
            is_optional=self.is_relation_optional(constraint, table),
            is_relation=True,
        )
        models = {**models, owning_key: owning.with_field(forward)}

        # Re-read after the update so a self relation sees its forward field
        referenced = models[referenced_key]
        backward = Field(
            name=unique_field_name(
                backward_field_base(table.name, context),
                referenced.field_names, naming_column, table.name),
            type=owning.name,
            attributes=(f"@relation({self.quote_string(name)})",),
            is_array=True,
            is_relation=True,
        )
        models = {**models, referenced_key: referenced.with_field(backward)}
        return models, used

    def _relation_attribute(self, name: str, table: Table, referenced_table: Table, constraint: Constraint) -> str:
        args = [
            self.quote_string(name),
            f"fields: [{self._field_list(table, constraint.columns)}]",
            f"references: [{self._field_list(referenced_table, constraint.referenced_columns)}]",
        ]
        if constraint.on_delete in REFERENTIAL_ACTIONS:
            args.append(f"onDelete: {REFERENTIAL_ACTIONS[constraint.on_delete]}")
        if constraint.on_update in REFERENTIAL_ACTIONS:
            args.append(f"onUpdate: {REFERENTIAL_ACTIONS[constraint.on_update]}")
        return f"@relation({', '.join(args)})"

    def is_relation_optional(self, constraint: Constraint, table: Table) -> bool:
        for col_name in constraint.columns:
            column = table.get_column(col_name)
            if column is not None and column.is_nullable:
                return True
        return False

    # Rendering

    def render_header(self) -> str:
        lines = []
        if self.options.header_comment:
            lines.append(f"// {self.options.header_comment}")
        lines.extend([
            "generator client {",
            f"  provider = {self.quote_string(self.options.client_provider)}",
            "}",
            "",
            "datasource db {",
            f"  provider = {self.quote_string(self.options.provider)}",
            f"  url      = env({self.quote_string(self.options.url_env)})",
            "}",
        ])
        return "\n".join(lines)

    def render_enum(self, enum: PrismaEnum) -> str:
        lines = [f"enum {enum.name} {{"]
        for value in enum.values:
            if value.mapped_from is not None:
                lines.append(f"  {value.name} @map({self.quote_string(value.mapped_from)})")
            else:
                lines.append(f"  {value.name}")
        if enum.db_name:
            lines.append("")
            lines.append(f"  @@map({self.quote_string(enum.db_name)})")
        lines.append("}")
        return "\n".join(lines)

    def render_model(self, model: Model) -> str:
        lines = [f"/// {line}" for line in (model.comment or '').splitlines()]
        lines.append(f"model {model.name} {{")

        name_width = max((len(f.name) for f in model.fields), default=0)
        type_width = max((len(f.type_signature) for f in model.fields), default=0)

        for f in model.scalar_fields:
            lines.extend(self._render_field(f, name_width, type_width))

        if model.relation_fields:
            lines.append("")
            lines.append("  // Relations")
            for f in model.relation_fields:
                lines.extend(self._render_field(f, name_width, type_width))

        if model.attributes:
            lines.append("")
            lines.extend(f"  {attribute}" for attribute in model.attributes)

        lines.append("}")
        return "\n".join(lines)

    def _render_field(self, f: Field, name_width: int, type_width: int) -> List[str]:
        lines = [f"  /// {line}" for line in (f.comment or '').splitlines()]
        line = f"  {f.name.ljust(name_width)} {f.type_signature.ljust(type_width)} {' '.join(f.attributes)}"
        lines.append(line.rstrip())
        return lines
