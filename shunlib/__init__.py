"""
shunlib: identifier case conversion and dynamic SQL templates over SQLite.
"""

from shunlib.core.db import connect, transaction
from shunlib.core.errors import (
    AmbiguousColumnError,
    BindError,
    ExecutionError,
    ExecutionErrorKind,
    MappingError,
    MissingColumnError,
    RenderError,
    ShunlibError,
    TemplateSyntaxError,
    TypeCoercionError,
    TypeMismatchError,
    UnboundParameterError,
)
from shunlib.core.naming import (
    CaseInsensitiveEnum,
    Convention,
    NameMapping,
    convert,
    to_convention,
)
from shunlib.core.param_type import SqlValue, ValueKind
from shunlib.core.serialization import (
    params_from_json,
    record_to_params,
    records_from_json,
    records_to_json,
)
from shunlib.engines.repository import Repository, SqlTemplate
from shunlib.engines.sql import (
    AffectedCount,
    RenderedStatement,
    ResultRow,
    RowCursor,
    RowMapper,
    SQLTemplateEngine,
    Template,
    bind,
    compile_template,
    execute,
    execute_script,
    map_row,
    parse_parameters,
    render,
    reset_template_cache,
)

__version__ = "0.1.0"

__all__ = [
    "connect",
    "transaction",
    "ShunlibError",
    "TemplateSyntaxError",
    "BindError",
    "UnboundParameterError",
    "TypeMismatchError",
    "RenderError",
    "ExecutionError",
    "ExecutionErrorKind",
    "MappingError",
    "MissingColumnError",
    "AmbiguousColumnError",
    "TypeCoercionError",
    "Convention",
    "NameMapping",
    "CaseInsensitiveEnum",
    "convert",
    "to_convention",
    "SqlValue",
    "ValueKind",
    "record_to_params",
    "params_from_json",
    "records_to_json",
    "records_from_json",
    "SQLTemplateEngine",
    "Template",
    "compile_template",
    "reset_template_cache",
    "parse_parameters",
    "bind",
    "render",
    "execute",
    "execute_script",
    "RenderedStatement",
    "ResultRow",
    "RowCursor",
    "AffectedCount",
    "RowMapper",
    "map_row",
    "Repository",
    "SqlTemplate",
]
