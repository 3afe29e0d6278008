"""Template renderer: turns validated flow input into a prompt.

Templates are Jinja2 source rendered in a sandbox with strict undefined
handling. The only callables a template sees are the helpers of the
active variant plus ``media(uri)``, which embeds a document reference in
place instead of its literal text.

    {% for turn in history %}
    {% if eq(turn.role, "user") %}User: {{ turn.content }}
    {% else %}Tutor: {{ turn.content }}
    {% endif %}
    {% endfor %}
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from functools import wraps
from typing import Any

from jinja2 import StrictUndefined, TemplateError, Undefined
from jinja2.sandbox import SandboxedEnvironment

from studyflow.engine.helpers import Helper, HelperSet
from studyflow.engine.media import MediaRef, parse_data_uri
from studyflow.errors import TemplateFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedPrompt:
    """Ordered prompt parts: text strings interleaved with media references."""

    parts: tuple[str | MediaRef, ...]

    @property
    def text(self) -> str:
        return "".join(p for p in self.parts if isinstance(p, str))

    @property
    def media(self) -> list[MediaRef]:
        return [p for p in self.parts if isinstance(p, MediaRef)]


def _tolerant(helper: Helper) -> Helper:
    """Pass undefined template values to a helper as ``None``."""

    @wraps(helper)
    def call(*args: Any) -> Any:
        return helper(*(None if isinstance(a, Undefined) else a for a in args))

    return call


def _environment(helpers: HelperSet) -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    # Drop Jinja's default globals (range, dict, lipsum, ...) so a template
    # can only call what its variant registered.
    env.globals.clear()
    env.globals.update({name: _tolerant(fn) for name, fn in helpers.items()})
    return env


def _split_media(text: str, nonce: str, embedded: list[MediaRef]) -> list[str | MediaRef]:
    """Replace this render's media markers with the references they stand for."""
    marker = re.compile(rf"\x00media:{nonce}:(\d+)\x00")
    parts: list[str | MediaRef] = []
    cursor = 0
    for match in marker.finditer(text):
        index = int(match.group(1))
        if index >= len(embedded):
            raise TemplateFailure(f"Media marker {index} has no embedded reference")
        if match.start() > cursor:
            parts.append(text[cursor:match.start()])
        parts.append(embedded[index])
        cursor = match.end()
    if cursor < len(text):
        parts.append(text[cursor:])
    return parts


def check_template(template: str) -> None:
    """Fail early on template syntax errors. Raises TemplateFailure."""
    try:
        SandboxedEnvironment().parse(template)
    except TemplateError as e:
        raise TemplateFailure(f"Template syntax error: {e}") from e


def render(template: str, data: dict[str, Any], helpers: HelperSet) -> RenderedPrompt:
    """Render ``template`` against ``data`` with the variant's ``helpers``.

    Raises TemplateFailure for unknown helpers, unresolvable values,
    syntax errors or bad media references. Raw Jinja errors never
    escape.
    """
    embedded: list[MediaRef] = []
    # Fresh per render so text in the data can never spell a valid marker.
    nonce = secrets.token_hex(8)

    def media(uri: Any) -> str:
        ref = parse_data_uri(str(uri))
        embedded.append(ref)
        return f"\x00media:{nonce}:{len(embedded) - 1}\x00"

    try:
        compiled = _environment(helpers).from_string(template)
        text = compiled.render({**data, "media": media})
    except (TemplateError, ValueError, TypeError) as e:
        raise TemplateFailure(f"Template rendering failed: {e}") from e

    parts = _split_media(text, nonce, embedded)

    logger.debug(f"Rendered prompt: {len(text)} chars, {len(embedded)} media part(s)")
    return RenderedPrompt(parts=tuple(parts))
