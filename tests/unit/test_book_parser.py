"""Unit tests for manuscript parsing, fingerprinting and markdown rendering."""

import hashlib

import pytest

from shared.exceptions import ValidationError
from shared.helper.book_parser import parse_book, render_markdown, split_frontmatter
from shared.helper.fingerprint import fingerprint

_MANUSCRIPT = """---
reference: dune-1965
title: Dune
authors:
  - Frank Herbert
editor: Chilton Books
tags: [science-fiction, classique]
edition_date: 1965-08-01
ean: 9780441013593
reseller_paper_urls:
  - https://shop.example.org/dune
---
# Livre un

Arrakis.
"""


class TestParseBook:
    def test_valid_manuscript(self) -> None:
        book = parse_book(_MANUSCRIPT.encode("utf-8"))
        fm = book.frontmatter
        assert fm.reference == "dune-1965"
        assert fm.title == "Dune"
        assert fm.authors == ["Frank Herbert"]
        assert fm.tags == ["science-fiction", "classique"]
        assert fm.edition_date == "1965-08-01"
        assert fm.ean == "9780441013593"
        assert fm.reseller_paper_urls == ["https://shop.example.org/dune"]
        assert fm.reseller_digital_urls == []
        assert fm.summary is None
        assert book.content == "# Livre un\n\nArrakis."

    def test_fingerprint_covers_raw_bytes(self) -> None:
        raw = _MANUSCRIPT.encode("utf-8")
        book = parse_book(raw)
        assert book.fingerprint == hashlib.sha256(raw).hexdigest()
        assert len(book.fingerprint) == 64

    def test_metadata_change_changes_fingerprint(self) -> None:
        first = parse_book(_MANUSCRIPT.encode("utf-8"))
        second = parse_book(_MANUSCRIPT.replace("classique", "culte").encode("utf-8"))
        assert first.fingerprint != second.fingerprint

    def test_bom_is_tolerated(self) -> None:
        book = parse_book(b"\xef\xbb\xbf" + _MANUSCRIPT.encode("utf-8"))
        assert book.frontmatter.reference == "dune-1965"

    def test_single_author_string_becomes_list(self) -> None:
        book = parse_book(b"---\nreference: r\ntitle: T\nauthors: Jane Doe\ntags:\n---\nbody")
        assert book.frontmatter.authors == ["Jane Doe"]
        assert book.frontmatter.tags == []

    @pytest.mark.parametrize(
        "raw",
        [
            b"# Pas de front-matter\n",
            b"---\nreference: r\ntitle: T\n",
            b"---\n- a\n- b\n---\nbody",
            b"---\nreference: r\n---\nbody",
            b"---\nreference: '  '\ntitle: T\n---\nbody",
            b"---\nreference: [unclosed\ntitle: T\n---\nbody",
            b"---\nreference: r\ntitle: \xff\xfe\n---\nbody",
        ],
        ids=["missing", "unclosed", "not-a-mapping", "no-title", "blank-reference", "bad-yaml", "not-utf8"],
    )
    def test_invalid_manuscripts_raise_validation_error(self, raw: bytes) -> None:
        with pytest.raises(ValidationError):
            parse_book(raw)


class TestSplitFrontmatter:
    def test_body_may_contain_rulers(self) -> None:
        yaml_text, body = split_frontmatter("---\na: 1\n---\nintro\n---\nsuite")
        assert yaml_text == "a: 1"
        assert body == "intro\n---\nsuite"


def test_fingerprint_is_deterministic() -> None:
    assert fingerprint(b"abc") == fingerprint(b"abc")
    assert fingerprint(b"abc") != fingerprint(b"abd")


def test_render_markdown() -> None:
    assert render_markdown("**gras**") == "<p><strong>gras</strong></p>"
