"""Admission checks and variable extraction for catalog templates."""

from typing import List

from .parser import BLOCK_HELPERS, TAG_PATTERN, tokenize


def validate_source(source: str, part: str) -> List[str]:
    """Report every syntax problem in one template part.

    Checks block balance and nesting, unsupported helpers (``#unless``,
    ``else``...), malformed tags, and brace sequences outside ``{{ }}`` tags.
    """
    errors: List[str] = []
    stack = []

    for token in tokenize(source):
        if token.kind == "open":
            stack.append(token)
        elif token.kind == "close":
            if not stack:
                errors.append(f"Unexpected {token.source} without matching opener in {part} template")
            elif stack[-1].helper != token.helper:
                opener = stack.pop()
                errors.append(
                    f"Mismatched {token.source} closing {opener.source} in {part} template"
                )
            else:
                stack.pop()
        elif token.kind == "invalid":
            if not token.value:
                errors.append(f"Empty tag {token.source} in {part} template")
            elif token.helper in BLOCK_HELPERS and token.value.startswith("#"):
                errors.append(f"Block {token.source} needs a variable path in {part} template")
            elif token.value.startswith("#") or token.value == "else" or token.value.startswith("^"):
                errors.append(f"Unsupported block helper {token.source} in {part} template")
            else:
                errors.append(f"Malformed tag {token.source} in {part} template")

    for opener in stack:
        errors.append(f"Unclosed {{{{#{opener.helper}}}}} block in {part} template")

    remainder = TAG_PATTERN.sub("", source)
    if "{{" in remainder:
        errors.append(f"Unterminated '{{{{' in {part} template")
    if "}}" in remainder:
        errors.append(f"Stray '}}}}' in {part} template")
    singles = remainder.replace("{{", "").replace("}}", "")
    if "{" in singles or "}" in singles:
        errors.append(f"Malformed single-brace variable syntax in {part} template")

    return errors


def validate_template(subject: str, html_template: str, text_template: str) -> List[str]:
    """Validate all three parts of a template.

    Returns:
        List of error messages, empty when the template is acceptable
    """
    errors: List[str] = []
    parts = (("subject", subject), ("HTML", html_template), ("text", text_template))

    for name, content in parts:
        if not content or not content.strip():
            errors.append(f"{name[0].upper()}{name[1:]} template is required")

    for name, content in parts:
        if content:
            errors.extend(validate_source(content, name))
    return errors


def extract_variables(*sources: str) -> List[str]:
    """Every path referenced by variables, conditions and loops, in first-seen order.

    Loop-local names (``this``, ``index``, ``first``, ``last``) are excluded.
    """
    seen = []
    for source in sources:
        for token in tokenize(source or ""):
            if token.kind in ("var", "open"):
                path = token.value
                root = path.split(".", 1)[0]
                if root in ("this", "index", "first", "last"):
                    continue
                if path not in seen:
                    seen.append(path)
    return seen
