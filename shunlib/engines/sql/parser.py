"""
Static analysis of SQL templates.

Walks the Jinja2 AST once at compile time and records how each parameter is
used, so the binder can reject bad parameter records before rendering:

- parameters: every undeclared name the template (and its partials) reads
- required: names output unconditionally without an optional marker
- scalar_outputs: names output directly as ``{{ name }}``
- sequence_args: names passed to a sequence-only filter (``| in_list``)
- loop_sources: names iterated by ``{% for %}``
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from jinja2 import meta, nodes

from shunlib.engines.sql.filters import OPTIONAL_FILTERS, SEQUENCE_FILTERS


@dataclass(frozen=True)
class TemplateAnalysis:
    parameters: frozenset[str]
    required: frozenset[str]
    scalar_outputs: frozenset[str]
    sequence_args: frozenset[str]
    loop_sources: frozenset[str]
    partials: tuple[str, ...]


class _Walker:
    def __init__(self, load_partial: Callable[[str], nodes.Template | None]) -> None:
        self._load_partial = load_partial
        self.required: set[str] = set()
        self.scalar_outputs: set[str] = set()
        self.sequence_args: set[str] = set()
        self.loop_sources: set[str] = set()
        self.partials: list[str] = []
        self.undeclared: set[str] = set()

    def visit_template(self, ast: nodes.Template, guarded: bool) -> None:
        self.undeclared |= meta.find_undeclared_variables(ast)
        for child in ast.body:
            self.visit(child, guarded)

    def visit(self, node: nodes.Node, guarded: bool) -> None:
        if isinstance(node, nodes.Output):
            for child in node.nodes:
                self._visit_output(child, guarded)
        elif isinstance(node, nodes.If):
            for child in node.body:
                self.visit(child, True)
            for branch in node.elif_:
                self.visit(branch, True)
            for child in node.else_:
                self.visit(child, True)
        elif isinstance(node, nodes.For):
            if isinstance(node.iter, nodes.Name):
                self.loop_sources.add(node.iter.name)
                if not guarded:
                    self.required.add(node.iter.name)
            for child in node.body:
                self.visit(child, True)
            for child in node.else_:
                self.visit(child, True)
        elif isinstance(node, nodes.Macro):
            for child in node.body:
                self.visit(child, True)
        elif isinstance(node, nodes.CallBlock):
            # Clause tags (where, set_clause, trim) always render their body
            clause = isinstance(node.call, nodes.Call) and isinstance(
                node.call.node, nodes.ExtensionAttribute
            )
            for child in node.body:
                self.visit(child, guarded if clause else True)
        elif isinstance(node, nodes.Include):
            self._visit_include(node, guarded)
        else:
            for child in node.iter_child_nodes():
                self.visit(child, guarded)

    def _visit_output(self, expr: nodes.Node, guarded: bool) -> None:
        if isinstance(expr, nodes.TemplateData):
            return
        if isinstance(expr, nodes.Name):
            self.scalar_outputs.add(expr.name)
            if not guarded:
                self.required.add(expr.name)
            return
        if isinstance(expr, nodes.Filter):
            # walk the whole chain: {{ ids | optional | in_list }}
            chain: list[str] = []
            inner: nodes.Node = expr
            while isinstance(inner, nodes.Filter):
                chain.append(inner.name)
                inner = inner.node
            if OPTIONAL_FILTERS.intersection(chain):
                return
            if isinstance(inner, nodes.Name) and chain[-1] in SEQUENCE_FILTERS:
                self.sequence_args.add(inner.name)
        if not guarded:
            self.required.update(_required_names(expr))

    def _visit_include(self, node: nodes.Include, guarded: bool) -> None:
        if not isinstance(node.template, nodes.Const):
            return
        name = node.template.value
        if name in self.partials:
            return
        self.partials.append(name)
        ast = self._load_partial(name)
        if ast is not None:
            self.visit_template(ast, guarded)


def _required_names(expr: nodes.Node) -> set[str]:
    """Names read by *expr*, skipping operands of optional filters."""
    if isinstance(expr, nodes.Filter) and expr.name in OPTIONAL_FILTERS:
        return set()
    if isinstance(expr, nodes.Name):
        return {expr.name} if expr.ctx == "load" else set()
    out: set[str] = set()
    for child in expr.iter_child_nodes():
        out |= _required_names(child)
    return out


def analyze_template(
    ast: nodes.Template,
    load_partial: Callable[[str], nodes.Template | None] | None = None,
) -> TemplateAnalysis:
    """Analyze a parsed template; *load_partial* resolves ``{% include %}`` names."""
    walker = _Walker(load_partial or (lambda _name: None))
    walker.visit_template(ast, False)
    params = frozenset(walker.undeclared)
    return TemplateAnalysis(
        parameters=params,
        required=frozenset(walker.required) & params,
        scalar_outputs=frozenset(walker.scalar_outputs) & params,
        sequence_args=frozenset(walker.sequence_args) & params,
        loop_sources=frozenset(walker.loop_sources) & params,
        partials=tuple(walker.partials),
    )


def parse_parameters(template: str) -> list[str]:
    """
    Extract variable names used in {{ ... }} and {% ... %} (undeclared in template).

    Returns a list of parameter names that should be provided in params for render().
    """
    from shunlib.engines.sql.template_engine import get_default_engine

    return get_default_engine().parse_parameters(template)
