import re
from typing import List

import sqlparse

# One SQL identifier, quoted ("" escapes a quote) or bare
IDENT = r'(?:"(?:[^"]|"")+"|[A-Za-z_][A-Za-z0-9_$]*)'
# Optionally schema-qualified identifier
QUALIFIED_IDENT = rf'{IDENT}(?:\s*\.\s*{IDENT})*'

_IDENT_RE = re.compile(IDENT)
_WHITESPACE_RE = re.compile(r'\s+')


def strip_comments(sql: str) -> str:
    """
    Removes -- line comments and (nested) /* */ block comments.

    String literals, quoted identifiers and $$ bodies are copied verbatim so a
    '--' or '/*' inside them survives.
    """
    result = []
    i = 0
    n = len(sql)
    nesting = 0
    in_quote = False
    quote_char = None
    in_dollar_quote = False
    in_line_comment = False

    while i < n:
        char = sql[i]
        next_char = sql[i + 1] if i + 1 < n else ''

        if in_line_comment:
            if char == '\n':
                in_line_comment = False
                result.append(char)
            i += 1
            continue

        if nesting > 0:
            if char == '/' and next_char == '*':
                nesting += 1
                i += 2
            elif char == '*' and next_char == '/':
                nesting -= 1
                i += 2
                if nesting == 0:
                    # keep tokens on either side of the comment apart
                    result.append(' ')
            else:
                i += 1
            continue

        if in_quote:
            result.append(char)
            if char == quote_char:
                if next_char == quote_char:
                    result.append(next_char)
                    i += 2
                    continue
                in_quote = False
            i += 1
            continue

        if in_dollar_quote:
            result.append(char)
            if char == '$' and next_char == '$':
                result.append(next_char)
                in_dollar_quote = False
                i += 2
                continue
            i += 1
            continue

        if char in ("'", '"'):
            in_quote = True
            quote_char = char
            result.append(char)
            i += 1
            continue

        if char == '$' and next_char == '$':
            in_dollar_quote = True
            result.append(char)
            result.append(next_char)
            i += 2
            continue

        if char == '-' and next_char == '-':
            in_line_comment = True
            i += 2
            continue

        if char == '/' and next_char == '*':
            nesting += 1
            i += 2
            continue

        result.append(char)
        i += 1

    return "".join(result)


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(' ', text).strip()


def split_statements(sql: str) -> List[str]:
    """
    Splits a DDL document into trimmed statements.

    Comments are removed first, then sqlparse splits on semicolons outside of
    quotes. The trailing semicolon is dropped and whitespace runs collapse to a
    single space. Never raises; a document without statements yields [].
    """
    if not sql or not sql.strip():
        return []

    cleaned = strip_comments(sql)
    statements = []
    for raw in sqlparse.split(cleaned):
        statement = normalize_whitespace(raw)
        while statement.endswith(';'):
            statement = statement[:-1].rstrip()
        if statement:
            statements.append(statement)
    return statements


def split_top_level(text: str, separator: str = ',') -> List[str]:
    """
    Splits on `separator` only at parenthesis depth zero and outside quotes.

    Empty parts are dropped; parts are trimmed.
    """
    parts = []
    current = []
    depth = 0
    quote_char = None

    for char in text:
        if quote_char:
            current.append(char)
            if char == quote_char:
                quote_char = None
            continue

        if char in ("'", '"'):
            quote_char = char
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def find_closing_paren(text: str, open_index: int) -> int:
    """Index of the ')' matching the '(' at `open_index`, or -1 if unbalanced."""
    depth = 0
    quote_char = None
    for i in range(open_index, len(text)):
        char = text[i]
        if quote_char:
            if char == quote_char:
                quote_char = None
            continue
        if char in ("'", '"'):
            quote_char = char
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0:
                return i
    return -1


def clean_identifier(name: str) -> str:
    """
    Returns the bare object name of a possibly quoted, possibly
    schema-qualified identifier.

    Quoted names keep their case; unquoted names are folded to lower case the
    way PostgreSQL folds them.
    """
    parts = _IDENT_RE.findall(name.strip())
    if not parts:
        return name.strip()
    last = parts[-1]
    if last.startswith('"') and last.endswith('"'):
        return last[1:-1].replace('""', '"')
    return last.lower()


def split_qualified(name: str) -> List[str]:
    """'public."Users".email' -> ['public', 'Users', 'email']"""
    return [clean_identifier(part) for part in _IDENT_RE.findall(name)]


def parse_identifier_list(text: str) -> List[str]:
    """'a, "B" , c' -> ['a', 'B', 'c']"""
    return [clean_identifier(part) for part in split_top_level(text) if part.strip()]


def unquote_literal(text: str) -> str:
    """Strips one pair of surrounding single or double quotes and unescapes doubled quotes."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)
    return text
