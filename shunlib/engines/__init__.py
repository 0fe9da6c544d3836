"""
Engines: SQL templates (Jinja2) and the Repository built on them.
"""

from shunlib.engines.repository import Repository, SqlTemplate
from shunlib.engines.sql import (
    SQLTemplateEngine,
    compile_template,
    execute,
    parse_parameters,
)

__all__ = [
    "Repository",
    "SqlTemplate",
    "SQLTemplateEngine",
    "compile_template",
    "execute",
    "parse_parameters",
]
