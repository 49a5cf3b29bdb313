from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from prismaforge.constants import ConstraintKind, Severity


@dataclass(frozen=True)
class EnumType:
    name: str
    values: Tuple[str, ...] = ()

    def to_dict(self):
        return {"name": self.name, "values": list(self.values)}


@dataclass
class Column:
    name: str
    data_type: str
    length: Optional[int] = None
    scale: Optional[int] = None
    is_array: bool = False
    is_nullable: bool = True
    default_value: Optional[str] = None
    is_primary_key: bool = False
    is_unique: bool = False
    comment: Optional[str] = None
    is_enum: bool = False
    is_identity: bool = False

    def __repr__(self):
        return f"Column(name='{self.name}', type='{self.data_type}')"

    def to_dict(self):
        return {
            "name": self.name,
            "data_type": self.data_type,
            "length": self.length,
            "scale": self.scale,
            "is_array": self.is_array,
            "is_nullable": self.is_nullable,
            "default_value": self.default_value,
            "is_primary_key": self.is_primary_key,
            "is_unique": self.is_unique,
            "comment": self.comment,
            "is_enum": self.is_enum,
            "is_identity": self.is_identity,
        }


@dataclass
class Constraint:
    kind: ConstraintKind
    columns: List[str] = field(default_factory=list)
    name: Optional[str] = None
    # FOREIGN KEY only; positional correspondence with `columns`
    referenced_table: Optional[str] = None
    referenced_columns: List[str] = field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    # CHECK only
    expression: Optional[str] = None

    @property
    def is_foreign_key(self) -> bool:
        return self.kind == ConstraintKind.FOREIGN_KEY

    def to_dict(self):
        return {
            "kind": self.kind.value,
            "name": self.name,
            "columns": self.columns,
            "referenced_table": self.referenced_table,
            "referenced_columns": self.referenced_columns,
            "on_delete": self.on_delete,
            "on_update": self.on_update,
            "expression": self.expression,
        }


@dataclass
class Index:
    columns: List[str]
    name: Optional[str] = None
    is_unique: bool = False
    method: Optional[str] = None  # btree, hash, gin, gist, ...

    def to_dict(self):
        return {
            "name": self.name,
            "columns": self.columns,
            "is_unique": self.is_unique,
            "method": self.method,
        }


@dataclass
class Table:
    name: str
    columns: List[Column] = field(default_factory=list)
    constraints: List[Constraint] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)
    comment: Optional[str] = None

    def get_column(self, name: str) -> Optional[Column]:
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None

    @property
    def foreign_keys(self) -> List[Constraint]:
        return [c for c in self.constraints if c.is_foreign_key]

    @property
    def primary_key_columns(self) -> List[str]:
        for constraint in self.constraints:
            if constraint.kind == ConstraintKind.PRIMARY_KEY:
                return list(constraint.columns)
        return [c.name for c in self.columns if c.is_primary_key]

    def to_dict(self):
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "constraints": [c.to_dict() for c in self.constraints],
            "indexes": [i.to_dict() for i in self.indexes],
            "comment": self.comment,
        }


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    statement: Optional[str] = None

    def to_dict(self):
        return {
            "severity": self.severity.value,
            "message": self.message,
            "statement": self.statement,
        }


@dataclass
class ParseResult:
    tables: List[Table] = field(default_factory=list)
    enums: List[EnumType] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def get_table(self, name: str) -> Optional[Table]:
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None

    def get_enum(self, name: str) -> Optional[EnumType]:
        lowered = name.lower()
        for enum_type in self.enums:
            if enum_type.name.lower() == lowered:
                return enum_type
        return None

    def to_dict(self):
        return {
            "tables": [t.to_dict() for t in self.tables],
            "enums": [e.to_dict() for e in self.enums],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# Prisma side. Built once per conversion, never mutated: every change returns a copy.

@dataclass(frozen=True)
class EnumValue:
    name: str
    mapped_from: Optional[str] = None  # raw database value when it is not a valid identifier


@dataclass(frozen=True)
class PrismaEnum:
    name: str
    values: Tuple[EnumValue, ...] = ()
    db_name: Optional[str] = None


@dataclass(frozen=True)
class Field:
    name: str
    type: str
    attributes: Tuple[str, ...] = ()
    is_optional: bool = False
    is_array: bool = False
    is_relation: bool = False
    comment: Optional[str] = None

    @property
    def type_signature(self) -> str:
        return self.type + ("?" if self.is_optional else "") + ("[]" if self.is_array else "")


@dataclass(frozen=True)
class Model:
    name: str
    table_name: str
    fields: Tuple[Field, ...] = ()
    attributes: Tuple[str, ...] = ()
    comment: Optional[str] = None

    @property
    def field_names(self) -> frozenset:
        return frozenset(f.name for f in self.fields)

    @property
    def scalar_fields(self) -> Tuple[Field, ...]:
        return tuple(f for f in self.fields if not f.is_relation)

    @property
    def relation_fields(self) -> Tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_relation)

    def get_field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def with_field(self, new_field: Field) -> "Model":
        return replace(self, fields=self.fields + (new_field,))
