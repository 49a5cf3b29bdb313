"""
Relation naming for generated Prisma models.

Every foreign key yields three names: a relation identifier shared by both
sides, a forward field on the owning model and a backward list field on the
referenced model. Names are derived from the foreign key column so that
several keys between the same two tables stay readable (author, editor,
reviewer) instead of being told apart by numeric suffixes. A counter is only
appended once every context-based candidate collides.

All functions here are pure. The set of relation identifiers already used in
a document is passed in and returned, never held in module state.
"""

import re
from typing import AbstractSet, FrozenSet, List, Tuple

from prismaforge.models import Constraint

UNCOUNTABLE_WORDS = frozenset({
    "data", "equipment", "information", "metadata", "media", "news", "series",
    "species", "software", "hardware", "feedback", "staff", "sheep", "fish",
})

IRREGULAR_PLURALS = {
    "people": "person",
    "children": "child",
    "men": "man",
    "women": "woman",
}

# -ies plurals of words that end in -ie, not -y
IE_PLURALS = frozenset({"movies", "cookies", "pies", "ties", "lies", "zombies", "calories", "rookies"})

# -uses plurals whose singular ends in -us; other -uses words (houses, courses) only drop the s
ES_PLURALS = frozenset({"statuses", "buses", "campuses", "bonuses", "viruses"})

# -ches plurals whose singular keeps the e
E_STEM_PLURALS = frozenset({"caches", "niches", "aches", "headaches", "cliches", "quiches"})

_ID_SUFFIX_RE = re.compile(r'_id$', re.IGNORECASE)


def _capitalize_word(word: str) -> str:
    if word.islower() or word.isupper():
        return word[:1].upper() + word[1:].lower()
    return word[:1].upper() + word[1:]


def to_pascal_case(name: str) -> str:
    """order_items -> OrderItems, createdAt -> CreatedAt"""
    return "".join(_capitalize_word(part) for part in name.split("_") if part)


def to_camel_case(name: str) -> str:
    """created_by_user -> createdByUser"""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def upper_first(name: str) -> str:
    return name[:1].upper() + name[1:]


def pluralize(word: str) -> str:
    """
    Table names are conventionally plural already, so a trailing 's' is left
    alone; pluralize("posts") == "posts".
    """
    lower = word.lower()
    if lower.endswith("s"):
        return word
    if lower.endswith(("sh", "ch", "x", "z")):
        return word + "es"
    if re.search(r'[^aeiou]y$', lower):
        return word[:-1] + "ies"
    return word + "s"


def singularize(word: str) -> str:
    """Inverse of pluralize for table names; keeps class, bus, status, analysis intact."""
    lower = word.lower()
    if lower in IRREGULAR_PLURALS:
        return word[:1] + IRREGULAR_PLURALS[lower][1:]
    if lower in UNCOUNTABLE_WORDS or not lower.endswith("s"):
        return word
    if lower in IE_PLURALS:
        return word[:-1]
    if lower.endswith("ies") and len(lower) > 3:
        return word[:-3] + ("Y" if word[-3:].isupper() else "y")
    if lower.endswith(("sses", "shes", "xes", "zzes")):
        return word[:-2]
    if lower.endswith("uses"):
        return word[:-2] if lower in ES_PLURALS else word[:-1]
    if lower.endswith("ches"):
        return word[:-1] if lower in E_STEM_PLURALS else word[:-2]
    if lower.endswith("zes"):
        return word[:-1]
    if lower.endswith(("ss", "us", "is")):
        return word
    return word[:-1]


def model_name_for_table(table_name: str) -> str:
    """users -> User, order_items -> OrderItem"""
    parts = [p for p in table_name.split("_") if p]
    if not parts:
        return to_pascal_case(table_name)
    parts[-1] = singularize(parts[-1])
    return to_pascal_case("_".join(parts))


def singular_field_name(table_name: str) -> str:
    """users -> user, order_items -> orderItem"""
    model_name = model_name_for_table(table_name)
    return model_name[:1].lower() + model_name[1:]


def strip_id_suffix(column_name: str) -> str:
    return _ID_SUFFIX_RE.sub("", column_name)


def select_naming_column(constraint: Constraint) -> str:
    """
    Picks the foreign key column that drives name generation.

    For (tenant_id, user_id) -> users(tenant_id, id) the business key user_id
    is chosen: the column paired with a referenced `id`, else the last column.
    """
    columns = constraint.columns
    if len(columns) == 1 or not constraint.referenced_columns:
        return columns[0]
    for position, referenced in enumerate(constraint.referenced_columns):
        if referenced.lower() == "id" and position < len(columns):
            return columns[position]
    return columns[-1]


def foreign_key_context(naming_column: str) -> str:
    """created_by_user_id -> created_by_user"""
    parts = [p for p in strip_id_suffix(naming_column).split("_") if p]
    return "_".join(parts)


def is_meaningful_context(context: str, owning_table: str) -> bool:
    lowered = context.lower()
    return lowered != "id" and lowered != owning_table.lower()


def relation_name(owning_model: str, referenced_model: str, context: str, owning_table: str,
                  used: FrozenSet[str]) -> Tuple[str, FrozenSet[str]]:
    """
    Returns the relation identifier and the grown set of used identifiers.

    PostToUser_Author when the context is meaningful, PostToUser otherwise;
    _2, _3, ... only when the identifier is taken.
    """
    base = f"{owning_model}To{referenced_model}"
    if is_meaningful_context(context, owning_table):
        base = f"{base}_{to_pascal_case(context)}"

    candidate = base
    counter = 2
    while candidate in used:
        candidate = f"{base}_{counter}"
        counter += 1
    return candidate, used | {candidate}


def forward_field_base(naming_column: str, referenced_table: str) -> str:
    if naming_column.lower() == "id":
        return singular_field_name(referenced_table)
    context = foreign_key_context(naming_column)
    if context.lower() == referenced_table.lower():
        return singular_field_name(referenced_table)
    return to_camel_case(context)


def backward_field_base(owning_table: str, context: str) -> str:
    base = to_camel_case(pluralize(owning_table))
    if is_meaningful_context(context, owning_table):
        return f"{base}As{to_pascal_case(context)}"
    return base


def naming_candidates(base: str, naming_column: str, owning_table: str) -> List[str]:
    """The uniqueness cascade, most preferred first."""
    stripped = strip_id_suffix(naming_column)
    candidates = [base]
    full_context = to_camel_case(stripped)
    if full_context != base:
        candidates.append(full_context)
    candidates.append(to_camel_case(owning_table) + upper_first(base))
    candidates.append(to_camel_case(naming_column))
    candidates.append(to_camel_case(f"{owning_table}_{stripped}"))
    return candidates


def unique_field_name(base: str, existing: AbstractSet[str], naming_column: str, owning_table: str) -> str:
    candidates = naming_candidates(base, naming_column, owning_table)
    for candidate in candidates:
        if candidate not in existing:
            return candidate

    last_resort = candidates[-1]
    counter = 2
    while f"{last_resort}{counter}" in existing:
        counter += 1
    return f"{last_resort}{counter}"
