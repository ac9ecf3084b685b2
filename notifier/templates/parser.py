"""Tokenizer and parser for the ``{{ }}`` template syntax.

Supported tags:
    {{path.to.value}}           variable
    {{#if path}}...{{/if}}      conditional, no else branch
    {{#each path}}...{{/each}}  iteration with this/index/first/last bound

``parse`` turns a source string into a tuple of nodes and caches the result,
so a template used for every message is only parsed once per process.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple, Union

from notifier.notifications.models import NotificationTemplateError

TAG_PATTERN = re.compile(r"\{\{([^{}]*)\}\}")
PATH_PATTERN = re.compile(r"^[A-Za-z_][\w-]*(\.[\w-]+)*$")

BLOCK_HELPERS = ("if", "each")


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Variable:
    path: str
    source: str  # the tag exactly as written, emitted when unresolved


@dataclass(frozen=True)
class If:
    path: str
    body: Tuple["Node", ...]


@dataclass(frozen=True)
class Each:
    path: str
    body: Tuple["Node", ...]


Node = Union[Literal, Variable, If, Each]


@dataclass(frozen=True)
class Token:
    kind: str  # text | var | open | close | invalid
    value: str
    source: str
    position: int
    helper: str = ""


class TemplateSyntaxError(NotificationTemplateError):
    """The source cannot be turned into a node tree."""


def tokenize(source: str) -> List[Token]:
    """Split ``source`` into text and tag tokens.

    Tags that are not a variable, a supported block opener or a matching
    closer come back as ``invalid`` tokens; ``validate_source`` reports them.
    """
    tokens: List[Token] = []
    cursor = 0
    for match in TAG_PATTERN.finditer(source):
        if match.start() > cursor:
            tokens.append(Token("text", source[cursor:match.start()], source[cursor:match.start()], cursor))
        tokens.append(_classify(match.group(1).strip(), match.group(0), match.start()))
        cursor = match.end()
    if cursor < len(source):
        tokens.append(Token("text", source[cursor:], source[cursor:], cursor))
    return tokens


def _classify(content: str, raw: str, position: int) -> Token:
    if content.startswith("#"):
        helper, _, argument = content[1:].partition(" ")
        argument = argument.strip()
        if helper in BLOCK_HELPERS and PATH_PATTERN.match(argument):
            return Token("open", argument, raw, position, helper=helper)
        return Token("invalid", content, raw, position, helper=helper)
    if content.startswith("/"):
        helper = content[1:].strip()
        if helper in BLOCK_HELPERS:
            return Token("close", helper, raw, position, helper=helper)
        return Token("invalid", content, raw, position, helper=helper)
    if content != "else" and PATH_PATTERN.match(content):
        return Token("var", content, raw, position)
    return Token("invalid", content, raw, position)


@lru_cache(maxsize=512)
def parse(source: str) -> Tuple[Node, ...]:
    """Parse a template source into nodes.

    Raises:
        TemplateSyntaxError: On unbalanced blocks or unsupported tags
    """
    root: List[Node] = []
    # Each frame: (helper, path, children, opening token)
    stack: List[Tuple[str, str, List[Node], Token]] = []
    current = root

    for token in tokenize(source):
        if token.kind == "text":
            current.append(Literal(token.value))
        elif token.kind == "var":
            current.append(Variable(token.value, token.source))
        elif token.kind == "open":
            children: List[Node] = []
            stack.append((token.helper, token.value, children, token))
            current = children
        elif token.kind == "close":
            if not stack:
                raise TemplateSyntaxError(
                    f"Unexpected {token.source} at position {token.position}"
                )
            helper, path, children, opener = stack.pop()
            if helper != token.helper:
                raise TemplateSyntaxError(
                    f"{token.source} at position {token.position} closes "
                    f"{opener.source} opened at position {opener.position}"
                )
            node = If(path, tuple(children)) if helper == "if" else Each(path, tuple(children))
            current = stack[-1][2] if stack else root
            current.append(node)
        else:
            raise TemplateSyntaxError(
                f"Unsupported tag {token.source} at position {token.position}"
            )

    if stack:
        opener = stack[-1][3]
        raise TemplateSyntaxError(
            f"Unclosed {opener.source} opened at position {opener.position}"
        )
    return tuple(root)
