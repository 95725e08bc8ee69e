"""Tests for wiki-link token parsing."""

from notetree.models import Ref
from notetree.vault.parser import extract_refs, iter_ref_tokens, parse_ref


def test_parse_plain_ref():
    assert parse_ref("foo.bar") == Ref(ref="foo.bar", label="foo.bar", has_label=False)


def test_parse_labelled_ref_trims_both_sides():
    ref = parse_ref("  Display Name | foo.bar ")
    assert ref.ref == "foo.bar"
    assert ref.label == "Display Name"
    assert ref.has_label


def test_parse_splits_on_first_divider():
    ref = parse_ref("a|b|c")
    assert ref.label == "a"
    assert ref.ref == "b|c"


def test_extract_refs_in_order():
    content = "See [[alpha]] and [[Label|beta]].\n\n[[gamma]] closes."
    assert [r.ref for r in extract_refs(content)] == ["alpha", "beta", "gamma"]


def test_extract_refs_ignores_malformed_tokens():
    content = "[[]] [[ ]] [[a\nb]] [[a[b]] [single]"
    assert extract_refs(content) == []


def test_token_positions():
    text = "x [[foo]] y"
    (token,) = list(iter_ref_tokens(text))
    assert text[token.start:token.end] == "[[foo]]"
    assert token.raw == "foo"
