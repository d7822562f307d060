"""Manuscript parsing: YAML front-matter + markdown body.

A manuscript looks like::

    ---
    reference: dune-1965
    title: Dune
    authors: [Frank Herbert]
    ---
    # Chapter one
    ...
"""

import re

import markdown
import yaml
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError
from shared.helper.fingerprint import fingerprint
from shared.models.book import BookFrontmatter, ParsedBook

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)


def split_frontmatter(text: str) -> tuple[str, str]:
    """Separate the leading YAML block from the body.

    Returns:
        tuple[str, str]: (yaml_text, body)

    Raises:
        ValidationError: If the text does not start with a closed "---" block.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        raise ValidationError("missing YAML front-matter")
    return match.group(1), match.group(2)


def parse_book(raw: bytes) -> ParsedBook:
    """Parse a raw manuscript into validated front-matter, body and fingerprint.

    The fingerprint covers the raw bytes, so any edit (metadata or text)
    marks the book as changed.

    Args:
        raw (bytes): File content as read from disk.

    Returns:
        ParsedBook: The parsed manuscript.

    Raises:
        ValidationError: If the bytes are not UTF-8, the front-matter is
            missing, not a YAML mapping, or fails validation.
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError(f"document is not valid UTF-8: {exc}") from exc

    yaml_text, body = split_frontmatter(text)
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"invalid front-matter YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("front-matter must be a YAML mapping")

    try:
        frontmatter = BookFrontmatter.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid front-matter: {exc}") from exc

    return ParsedBook(
        frontmatter=frontmatter,
        content=body.strip(),
        fingerprint=fingerprint(raw),
    )


def render_markdown(text: str) -> str:
    """Convert markdown (as produced by the chat model) to HTML."""
    return markdown.markdown(text)
