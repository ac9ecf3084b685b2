"""Template parsing, rendering, validation and the template catalog."""

from .catalog import TemplateCatalog
from .defaults import DEFAULT_TEMPLATES, SAMPLE_PAYLOADS
from .parser import Each, If, Literal, TemplateSyntaxError, Variable, parse
from .renderer import RenderedTemplate, TemplateSource, render, render_string, resolve
from .validation import extract_variables, validate_source, validate_template
from .variables import VariableBuilder

__all__ = [
    "TemplateCatalog",
    "VariableBuilder",
    "DEFAULT_TEMPLATES",
    "SAMPLE_PAYLOADS",
    "parse",
    "render",
    "render_string",
    "resolve",
    "validate_source",
    "validate_template",
    "extract_variables",
    "RenderedTemplate",
    "TemplateSource",
    "TemplateSyntaxError",
    "Literal",
    "Variable",
    "If",
    "Each",
]
