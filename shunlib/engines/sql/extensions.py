"""
Custom Jinja2 block tags for SQL clauses that depend on optional parts.

{% where %} ... {% endwhere %}: prefix WHERE, strip leading AND/OR.
{% set_clause %} ... {% endset_clause %}: prefix SET, strip stray commas.
{% trim "," %} ... {% endtrim %}: strip a custom token (optional prefix).

Each block renders to nothing when its body is empty, and otherwise to a
leading space, the prefix and the trimmed body, so it can follow a table name
directly: ``SELECT * FROM dogs{% where %}...{% endwhere %}``.
"""

import re

from jinja2 import nodes
from jinja2.ext import Extension


def _trim_block(inner: str, prefix: str, pattern: re.Pattern[str]) -> str:
    s = inner.strip()
    while True:
        stripped = pattern.sub("", s).strip()
        if stripped == s:
            break
        s = stripped
    if not s:
        return ""
    if prefix:
        return f" {prefix} {s}"
    return f" {s}"


_WHERE_TOKENS = re.compile(r"^(?:AND|OR)\b|\b(?:AND|OR)$", re.IGNORECASE)
_SET_TOKENS = re.compile(r"^,|,$")


class _ClauseExtension(Extension):
    prefix = ""
    pattern: re.Pattern[str] = _SET_TOKENS

    def parse(self, parser) -> nodes.CallBlock:
        token = next(parser.stream)
        lineno = token.lineno
        end = f"name:end{token.value}"
        body = parser.parse_statements((end,), drop_needle=True)
        return nodes.CallBlock(
            self.call_method("_render_clause", [], [], []),
            [],
            [],
            body,
        ).set_lineno(lineno)

    def _render_clause(self, caller: object) -> str:
        inner = caller()
        if not inner or not isinstance(inner, str):
            return ""
        return _trim_block(inner, self.prefix, self.pattern)


class WhereExtension(_ClauseExtension):
    """
    {% where %} ... {% endwhere %}
    Renders the block, strips leading/trailing AND/OR and surrounding
    whitespace, and prefixes with 'WHERE' if the result is non-empty.
    """

    tags = {"where"}
    prefix = "WHERE"
    pattern = _WHERE_TOKENS


class SetClauseExtension(_ClauseExtension):
    """
    {% set_clause %} ... {% endset_clause %}
    Like where, for the assignment list of an UPDATE. Jinja2 reserves
    ``set`` for variable assignment, hence the longer tag name.
    """

    tags = {"set_clause"}
    prefix = "SET"
    pattern = _SET_TOKENS


def _parse_literal(parser, lineno: int) -> nodes.Const:
    # token and prefix are emitted into the SQL text, so they must be literals
    expr = parser.parse_expression()
    if not isinstance(expr, nodes.Const) or not isinstance(expr.value, str):
        parser.fail("trim token and prefix must be string literals", lineno)
    return expr


class TrimExtension(Extension):
    """
    {% trim token %} ... {% endtrim %} or {% trim token, prefix %} ... {% endtrim %}
    Strips *token* from both ends of the rendered body and prefixes it.
    """

    tags = {"trim"}

    def parse(self, parser) -> nodes.CallBlock:
        lineno = next(parser.stream).lineno
        args = [_parse_literal(parser, lineno)]
        if parser.stream.skip_if("comma"):
            args.append(_parse_literal(parser, lineno))
        else:
            args.append(nodes.Const(""))
        body = parser.parse_statements(("name:endtrim",), drop_needle=True)
        return nodes.CallBlock(
            self.call_method("_render_trim", args),
            [],
            [],
            body,
        ).set_lineno(lineno)

    def _render_trim(self, token: str, prefix: str, caller: object) -> str:
        inner = caller()
        if not inner or not isinstance(inner, str):
            return ""
        token = str(token).strip()
        if not token:
            return _trim_block(inner, str(prefix), re.compile(r"(?!x)x"))
        t = re.escape(token)
        return _trim_block(inner, str(prefix), re.compile(rf"^{t}|{t}$"))


# List of extensions to pass to Jinja2 Environment
SQL_EXTENSIONS: list[type[Extension]] = [WhereExtension, SetClauseExtension, TrimExtension]
