"""Lexical recovery of the tables a native query references.

Not a parser: the query is lexed with the sqlglot tokenizer (so string
literals, quoted identifiers and comments never trigger keyword matches)
and a small per-statement state machine walks the tokens looking for table
introducers (FROM, JOIN variants, commas in a FROM list).

Anything the scanner cannot classify is reported as an AmbiguousSpan, and
callers must treat that as a denial:
- statements not starting with SELECT/VALUES, CTE heads (WITH)
- brackets in table position (derived tables, parenthesised joins)
- table functions, column alias lists, LATERAL, TABLE, SELECT INTO
- names with more than two parts, non-identifiers in table position
- SQL-executing / file-reading functions (dblink, query_to_xml, ts_stat,
  crosstab, connectby, ...)
- dollar-quoted literals and literals containing a backslash
- template card references ({{#12}}) and snippets ({{snippet: x}})
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

import sqlglot
from sqlglot.errors import SqlglotError
from sqlglot.tokens import Token, TokenType

from tablegate.governance.errors import AmbiguousQueryReference
from tablegate.governance.models import AmbiguousSpan, ExtractionResult, RawReference

logger = logging.getLogger(__name__)


_STRING_TYPES = frozenset(
    getattr(TokenType, name)
    for name in (
        "STRING",
        "NATIONAL_STRING",
        "RAW_STRING",
        "HEREDOC_STRING",
        "BIT_STRING",
        "HEX_STRING",
        "BYTE_STRING",
        "UNICODE_STRING",
    )
    if hasattr(TokenType, name)
)
_NAME_TYPES = frozenset({TokenType.VAR, TokenType.IDENTIFIER})
_OPENERS = frozenset({TokenType.L_PAREN, TokenType.L_BRACKET, TokenType.L_BRACE})
_CLOSERS = frozenset({TokenType.R_PAREN, TokenType.R_BRACKET, TokenType.R_BRACE})

_WORD = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

_QUERY_HEADS = frozenset({"SELECT", "VALUES"})
_FROM_LIST_END = frozenset({
    "WHERE", "GROUP", "HAVING", "ORDER", "LIMIT", "OFFSET", "FETCH",
    "UNION", "INTERSECT", "EXCEPT", "WINDOW", "FOR", "RETURNING",
})
_ALWAYS_AMBIGUOUS = {
    "LATERAL": "LATERAL reference",
    "TABLE": "TABLE command",
    "INTO": "SELECT INTO",
}

# Functions that run SQL text or read server files.
DYNAMIC_SQL_FUNCTIONS = frozenset({
    "dblink", "dblink_exec", "dblink_open", "dblink_fetch", "dblink_send_query",
    "query_to_xml", "query_to_xmlschema", "query_to_xml_and_xmlschema",
    "table_to_xml", "table_to_xmlschema", "table_to_xml_and_xmlschema",
    "cursor_to_xml", "cursor_to_xmlschema",
    "schema_to_xml", "schema_to_xmlschema", "schema_to_xml_and_xmlschema",
    "database_to_xml", "database_to_xmlschema", "database_to_xml_and_xmlschema",
    "set_config", "pg_read_file", "pg_read_binary_file", "lo_import", "lo_export",
    "ts_stat", "ts_rewrite",
    "crosstab", "crosstab2", "crosstab3", "crosstab4", "connectby",
})

_CARD_REFERENCE = re.compile(r"\{\{\s*#[^}]*\}\}")
_SNIPPET = re.compile(r"\{\{\s*snippet\s*:[^}]*\}\}", re.IGNORECASE)
_TEMPLATE_TAG = re.compile(r"\{\{.*?\}\}", re.DOTALL)
_OPTIONAL_CLAUSE = re.compile(r"\[\[|\]\]")


def _keyword(token: Optional[Token]) -> Optional[str]:
    """Normalised keyword text, or None for literals and quoted identifiers."""
    if token is None or token.token_type in _STRING_TYPES:
        return None
    if token.token_type in (TokenType.IDENTIFIER, TokenType.NUMBER):
        return None
    return " ".join(token.text.upper().split())


def _line(token: Optional[Token]) -> Optional[int]:
    return getattr(token, "line", None) if token is not None else None


def _ambiguous(reason: str, token: Optional[Token] = None) -> AmbiguousQueryReference:
    text = token.text if token is not None else ""
    return AmbiguousQueryReference(reason, text, _line(token))


@dataclass
class _Frame:
    """Scanner state for one bracket level."""

    is_query: bool = False
    in_from: bool = False
    started: bool = False


class TableReferenceExtractor:
    """Recovers the conservative set of table references in a query."""

    def __init__(self, dialect: str = "postgres"):
        self.dialect = dialect

    def extract(
        self, query_text: str, known_identifiers: Iterable[str] = ()
    ) -> ExtractionResult:
        known = frozenset(name.casefold() for name in known_identifiers)
        ambiguous: list[AmbiguousSpan] = []

        text, template_spans = self._expand_template_tags(query_text or "")
        ambiguous.extend(template_spans)

        try:
            tokens = self._lex(text)
        except AmbiguousQueryReference as e:
            ambiguous.append(AmbiguousSpan(e.reason, e.text, e.line))
            return ExtractionResult(frozenset(), tuple(ambiguous))

        references: set[RawReference] = set()
        for statement in self._split_statements(tokens):
            try:
                references.update(self._scan_statement(statement, known))
            except AmbiguousQueryReference as e:
                logger.debug(f"Ambiguous construct in native query: {e}")
                ambiguous.append(AmbiguousSpan(e.reason, e.text, e.line))

        return ExtractionResult(frozenset(references), tuple(ambiguous))

    # ── Pre-lexing ────────────────────────────────────────────────────

    @staticmethod
    def _expand_template_tags(text: str) -> tuple[str, list[AmbiguousSpan]]:
        spans = [
            AmbiguousSpan("saved question reference", m.group(0))
            for m in _CARD_REFERENCE.finditer(text)
        ]
        spans.extend(
            AmbiguousSpan("snippet reference", m.group(0))
            for m in _SNIPPET.finditer(text)
        )
        text = _TEMPLATE_TAG.sub(" NULL ", text)
        text = _OPTIONAL_CLAUSE.sub("  ", text)
        return text, spans

    def _lex(self, text: str) -> list[Token]:
        try:
            tokens = sqlglot.tokenize(text, read=self.dialect)
        except SqlglotError as e:
            raise AmbiguousQueryReference("query could not be tokenized", str(e)[:100])

        for token in tokens:
            if token.token_type not in _STRING_TYPES:
                continue
            raw = text[token.start : token.end + 1]
            if raw.startswith("$"):
                raise _ambiguous("dollar-quoted literal", token)
            if "\\" in raw:
                raise _ambiguous("backslash in string literal", token)
        return tokens

    @staticmethod
    def _split_statements(tokens: list[Token]) -> list[list[Token]]:
        statements: list[list[Token]] = [[]]
        for token in tokens:
            if token.token_type == TokenType.SEMICOLON:
                statements.append([])
            else:
                statements[-1].append(token)
        return [s for s in statements if s]

    # ── Scanning ──────────────────────────────────────────────────────

    def _scan_statement(self, tokens: list[Token], known: frozenset[str]) -> set[RawReference]:
        head = next((t for t in tokens if t.token_type != TokenType.L_PAREN), None)
        head_kw = _keyword(head)
        if head_kw == "WITH":
            raise _ambiguous("common table expression", head)
        if head_kw not in _QUERY_HEADS:
            raise _ambiguous("unsupported statement", head)

        references: set[RawReference] = set()
        frames = [_Frame()]
        i = 0
        while i < len(tokens):
            token = tokens[i]
            kw = _keyword(token)
            frame = frames[-1]

            if token.token_type in _OPENERS:
                if token.token_type == TokenType.L_PAREN and i > 0:
                    callee = tokens[i - 1]
                    if (
                        callee.token_type not in _STRING_TYPES
                        and callee.text.casefold() in DYNAMIC_SQL_FUNCTIONS
                    ):
                        raise _ambiguous("dynamic SQL function", callee)
                frame.started = True
                frames.append(_Frame())
                i += 1
                continue

            if token.token_type in _CLOSERS:
                if len(frames) == 1:
                    raise _ambiguous("unbalanced brackets", token)
                frames.pop()
                i += 1
                continue

            started = frame.started
            frame.started = True

            if kw == "WITH" and not started:
                raise _ambiguous("common table expression", token)
            if kw in _ALWAYS_AMBIGUOUS:
                raise _ambiguous(_ALWAYS_AMBIGUOUS[kw], token)

            if kw in _QUERY_HEADS:
                frame.is_query = True
                frame.in_from = False
            elif kw == "FROM" and frame.is_query and (i == 0 or _keyword(tokens[i - 1]) != "DISTINCT"):
                frame.in_from = True
                i = self._read_reference(tokens, i + 1, known, references)
                continue
            elif kw is not None and (kw == "JOIN" or kw.endswith(" JOIN")):
                if not frame.is_query:
                    raise _ambiguous("join outside a query", token)
                frame.in_from = True
                i = self._read_reference(tokens, i + 1, known, references)
                continue
            elif token.token_type == TokenType.COMMA and frame.in_from:
                i = self._read_reference(tokens, i + 1, known, references)
                continue
            elif kw is not None and kw.split()[0] in _FROM_LIST_END:
                frame.in_from = False
            i += 1

        if len(frames) != 1:
            raise _ambiguous("unbalanced brackets", tokens[-1])
        return references

    def _read_reference(
        self,
        tokens: list[Token],
        i: int,
        known: frozenset[str],
        references: set[RawReference],
    ) -> int:
        """Read ``name``/``schema.name`` plus an optional alias starting at ``i``."""
        parts: list[str] = []
        while True:
            token = tokens[i] if i < len(tokens) else None
            if token is not None and token.token_type in _OPENERS:
                raise _ambiguous("subquery or parenthesised join in table position", token)
            if _keyword(token) in _ALWAYS_AMBIGUOUS:
                raise _ambiguous(_ALWAYS_AMBIGUOUS[_keyword(token)], token)
            name = self._name(token, known)
            if name is None:
                raise _ambiguous("expected a table name", token)
            parts.append(name)
            i += 1
            if i < len(tokens) and tokens[i].token_type == TokenType.DOT:
                i += 1
                continue
            break

        if len(parts) > 2:
            raise _ambiguous("multi-part table name", tokens[i - 1])
        if i < len(tokens) and tokens[i].token_type == TokenType.L_PAREN:
            raise _ambiguous("table function", tokens[i - 1])

        alias = None
        if i < len(tokens) and _keyword(tokens[i]) == "AS":
            alias_token = tokens[i + 1] if i + 1 < len(tokens) else None
            if alias_token is None or not (
                alias_token.token_type in _NAME_TYPES or _WORD.match(alias_token.text)
            ):
                raise _ambiguous("expected an alias", alias_token or tokens[i])
            alias = alias_token.text
            i += 2
        elif i < len(tokens) and tokens[i].token_type in _NAME_TYPES:
            alias = tokens[i].text
            i += 1

        if alias is not None and i < len(tokens) and tokens[i].token_type == TokenType.L_PAREN:
            raise _ambiguous("column alias list", tokens[i - 1])

        schema, name = (parts[0], parts[1]) if len(parts) == 2 else (None, parts[0])
        references.add(RawReference(name=name, schema=schema, alias=alias))
        return i

    @staticmethod
    def _name(token: Optional[Token], known: frozenset[str]) -> Optional[str]:
        """Identifier text of ``token`` if it can name a table."""
        if token is None or token.token_type in _STRING_TYPES:
            return None
        if token.token_type in _NAME_TYPES:
            return token.text
        # Keyword-shaped names are accepted only when the catalog knows them.
        if _WORD.match(token.text) and token.text.casefold() in known:
            return token.text
        return None
