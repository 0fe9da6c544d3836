"""
SQL template engine with Jinja2.

Compiles SQL templates into immutable ``Template`` handles and renders them
into parameterized statements (see binder.py and renderer.py).

Security: ``sql_finalize`` turns every ``{{ }}`` output into a positional bind
marker, so values never become part of the SQL text. Only ``| sql_raw`` (alias
``| safe``) emits text, and it accepts nothing but identifiers. ``SqlEnvironment``
joins captured output (macros, ``caller()``, ``{% set %}`` blocks) into
``SqlSafe``, so reused fragments keep their markers; parameters are always
plain ``str`` and are bound.

Performance: compiled templates are cached per engine in a ``TemplateCache``
keyed by template source hash, so repeated calls with the same SQL template
skip the parse phase entirely. The cache never evicts; it is cleared only by
``reset_cache()`` / ``reset_template_cache()``.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import jinja2
from jinja2 import DictLoader, Environment, StrictUndefined, nodes

from shunlib.core.config import settings
from shunlib.core.errors import TemplateSyntaxError
from shunlib.core.naming import NameMapping
from shunlib.engines.sql.binder import BoundContext, bind
from shunlib.engines.sql.extensions import SQL_EXTENSIONS
from shunlib.engines.sql.filters import SQL_FILTERS, sql_concat, sql_finalize
from shunlib.engines.sql.parser import TemplateAnalysis, analyze_template
from shunlib.engines.sql.renderer import RenderedStatement, render

_log = logging.getLogger(__name__)


class SqlUndefined(StrictUndefined):
    """Missing parameter: fails when output or iterated, reads as false in
    ``{% if %}`` so optional clauses can test for presence."""

    __slots__ = ()

    def __bool__(self) -> bool:
        return False


class SqlEnvironment(Environment):
    """Environment whose captured output is SQL text, not a value.

    Macro bodies, ``caller()`` and ``{% set %}`` blocks are joined with
    ``concat``; their parts are template text and already-finalized markers.
    """

    concat = staticmethod(sql_concat)


@dataclass(frozen=True, eq=False)
class Template:
    """Compiled, immutable SQL template."""

    name: str
    source: str
    key: str
    analysis: TemplateAnalysis
    jinja_template: jinja2.Template = field(repr=False)

    @property
    def parameters(self) -> frozenset[str]:
        return self.analysis.parameters


class TemplateCache:
    """Thread-safe mapping from content hash to compiled ``Template``.

    Concurrent compiles of the same source may both insert; the compiled
    output is deterministic, so the last writer wins.
    """

    def __init__(self) -> None:
        self._items: dict[str, Template] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Template | None:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, template: Template) -> Template:
        with self._lock:
            self._items[key] = template
        return template

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items


def _content_key(source: str, name: str | None) -> str:
    raw = source if name is None else f"{name}\x00{source}"
    return hashlib.md5(raw.encode(), usedforsecurity=False).hexdigest()


def _preview(source: str) -> str:
    limit = settings.SQL_TEMPLATE_PREVIEW_CHARS
    return source[:limit] + "..." if len(source) > limit else source


class SQLTemplateEngine:
    """Compiles and renders Jinja2 SQL templates.

    *partials* maps names to template sources that templates may pull in with
    ``{% include "NAME" %}``.
    """

    def __init__(self, partials: Mapping[str, str] | None = None) -> None:
        self._partials = dict(partials or {})
        self._cache = TemplateCache()
        self.env = SqlEnvironment(
            autoescape=False,
            extensions=SQL_EXTENSIONS,
            finalize=sql_finalize,
            undefined=SqlUndefined,
            loader=DictLoader(self._partials) if self._partials else None,
        )
        self.env.filters.update(SQL_FILTERS)

    @property
    def cache(self) -> TemplateCache:
        return self._cache

    @property
    def partials(self) -> Mapping[str, str]:
        return dict(self._partials)

    def compile(self, source: str, name: str | None = None) -> Template:
        """Return the compiled template for *source*, from cache when possible."""
        if not isinstance(source, str):
            raise TypeError(f"template source must be str, got {type(source).__name__}")
        key = _content_key(source, name)
        tpl = self._cache.get(key)
        if tpl is not None:
            return tpl
        tpl = self._compile(source, key, name or f"sql_{key[:12]}")
        return self._cache.put(key, tpl)

    def _compile(self, source: str, key: str, name: str) -> Template:
        try:
            ast = self.env.parse(source)
            analysis = analyze_template(ast, self._load_partial)
            jt = self.env.from_string(ast)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateSyntaxError(
                f"SQL template syntax error: {e.message}. Template preview:\n{_preview(source)}",
                template=name,
                lineno=e.lineno,
            ) from e
        except TemplateSyntaxError as e:
            if e.template is None:
                e.template = name
            raise
        _log.debug("Compiled SQL template %s (%d parameters)", name, len(analysis.parameters))
        return Template(
            name=name,
            source=source,
            key=key,
            analysis=analysis,
            jinja_template=jt,
        )

    def _load_partial(self, name: str) -> nodes.Template:
        source = self._partials.get(name)
        if source is None:
            raise TemplateSyntaxError(f"Unknown partial template: {name!r}")
        return self.env.parse(source, name=name)

    def bind(
        self,
        template: Template | str,
        params: Mapping[str, Any] | None = None,
        naming: NameMapping | None = None,
    ) -> BoundContext:
        if isinstance(template, str):
            template = self.compile(template)
        return bind(template, params or {}, naming)

    def render(
        self,
        template: Template | str,
        params: Mapping[str, Any] | None = None,
        naming: NameMapping | None = None,
    ) -> RenderedStatement:
        """Compile (cached), bind and render *template* with *params*."""
        statement = render(self.bind(template, params, naming))
        _log.debug("Rendered SQL: %s", statement.sql)
        return statement

    def parse_parameters(self, template: str) -> list[str]:
        """Extract variable names used in ``{{ }}`` and ``{% %}`` (undeclared)."""
        return sorted(self.compile(template).parameters)

    def reset_cache(self) -> None:
        self._cache.clear()


_default_engine: SQLTemplateEngine | None = None
_default_lock = threading.Lock()


def get_default_engine() -> SQLTemplateEngine:
    """Return the process-wide engine (created lazily, thread-safe)."""
    global _default_engine
    if _default_engine is None:
        with _default_lock:
            if _default_engine is None:
                _default_engine = SQLTemplateEngine()
    return _default_engine


def compile_template(source: str, name: str | None = None) -> Template:
    """Compile *source* with the process-wide engine and template cache."""
    return get_default_engine().compile(source, name)


def reset_template_cache() -> None:
    """Drop every cached template of the process-wide engine."""
    if _default_engine is not None:
        _default_engine.reset_cache()
