"""Evaluate parsed templates against a variable bag."""

import html
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .parser import Each, If, Literal, Node, Variable, parse

MISSING = object()


@dataclass(frozen=True)
class TemplateSource:
    subject: str
    html_template: str
    text_template: str


@dataclass(frozen=True)
class RenderedTemplate:
    subject: str
    html: str
    text: str


def resolve(scope: Mapping[str, Any], path: str) -> Any:
    """Dotted-path lookup through mappings and sequences.

    Returns ``MISSING`` when any segment is absent.

    Example:
        >>> resolve({"task": {"tags": ["a", "b"]}}, "task.tags.1")
        'b'
    """
    current: Any = scope
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, str) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_nodes(nodes: Sequence[Node], scope: Mapping[str, Any], escape: bool = False) -> str:
    parts = []
    for node in nodes:
        if isinstance(node, Literal):
            parts.append(node.text)
        elif isinstance(node, Variable):
            value = resolve(scope, node.path)
            if value is MISSING or value is None:
                parts.append(node.source)
            else:
                text = _format(value)
                parts.append(html.escape(text) if escape else text)
        elif isinstance(node, If):
            value = resolve(scope, node.path)
            if value is not MISSING and value:
                parts.append(render_nodes(node.body, scope, escape))
        elif isinstance(node, Each):
            items = resolve(scope, node.path)
            if not isinstance(items, (list, tuple)):
                continue
            last_index = len(items) - 1
            for index, item in enumerate(items):
                item_scope = {
                    **scope,
                    "this": item,
                    "index": index,
                    "first": index == 0,
                    "last": index == last_index,
                }
                parts.append(render_nodes(node.body, item_scope, escape))
    return "".join(parts)


def render_string(source: str, variables: Mapping[str, Any], escape: bool = False) -> str:
    """Render one template string.

    Unresolved variables are emitted exactly as written. With ``escape`` the
    substituted values are HTML-escaped (literal template text never is).
    """
    return render_nodes(parse(source), variables, escape)


def render(template, variables: Mapping[str, Any]) -> RenderedTemplate:
    """Render subject, HTML and text parts of a template.

    Args:
        template: Object with ``subject``, ``html_template`` and
            ``text_template`` attributes (EmailTemplate or TemplateSource)
        variables: Variable bag, including the default variables

    Returns:
        RenderedTemplate; the subject is collapsed onto one line

    Raises:
        TemplateSyntaxError: If a part cannot be parsed
    """
    subject = render_string(template.subject, variables)
    return RenderedTemplate(
        subject=" ".join(subject.split()),
        html=render_string(template.html_template, variables, escape=True),
        text=render_string(template.text_template, variables),
    )
