"""
SQL template engine (Jinja2) over embedded SQLite.

compile -> bind -> render -> execute -> map.
"""

from shunlib.engines.sql.binder import BoundContext, bind
from shunlib.engines.sql.executor import execute, execute_script, split_statements
from shunlib.engines.sql.mapper import RowMapper, map_row
from shunlib.engines.sql.parser import TemplateAnalysis, parse_parameters
from shunlib.engines.sql.renderer import RenderedStatement, render
from shunlib.engines.sql.results import AffectedCount, ResultRow, RowCursor
from shunlib.engines.sql.template_engine import (
    SQLTemplateEngine,
    Template,
    TemplateCache,
    compile_template,
    get_default_engine,
    reset_template_cache,
)

__all__ = [
    "SQLTemplateEngine",
    "Template",
    "TemplateAnalysis",
    "TemplateCache",
    "compile_template",
    "get_default_engine",
    "reset_template_cache",
    "parse_parameters",
    "BoundContext",
    "bind",
    "RenderedStatement",
    "render",
    "execute",
    "execute_script",
    "split_statements",
    "ResultRow",
    "RowCursor",
    "AffectedCount",
    "RowMapper",
    "map_row",
]
