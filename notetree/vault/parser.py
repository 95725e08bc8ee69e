"""Wiki-link token parsing shared by the reference cache and the rewriter."""

import re
from dataclasses import dataclass
from typing import Iterator

from ..models import Ref

# [[ref]] and [[label|ref]]; inner text never contains brackets or line breaks
REF_PATTERN = re.compile(r"\[\[([^\[\]\n]+)\]\]")

LABEL_DIVIDER = "|"


@dataclass(frozen=True)
class RefToken:
    """A link token found in text."""

    start: int
    end: int
    raw: str  # inner text between the brackets
    ref: Ref


def parse_ref(raw: str) -> Ref:
    """Split a token's inner text on the first divider.

    ``"foo"`` -> ref=label="foo"; ``"Display | foo"`` -> label="Display",
    ref="foo".
    """
    label, divider, ref = raw.partition(LABEL_DIVIDER)
    if not divider:
        value = raw.strip()
        return Ref(ref=value, label=value, has_label=False)
    return Ref(ref=ref.strip(), label=label.strip(), has_label=True)


def iter_ref_tokens(text: str) -> Iterator[RefToken]:
    for match in REF_PATTERN.finditer(text):
        raw = match.group(1)
        yield RefToken(start=match.start(), end=match.end(), raw=raw, ref=parse_ref(raw))


def extract_refs(content: str) -> list[Ref]:
    """All refs in ``content`` in order of appearance.

    Scanned line by line so a token never spans a line break.
    """
    refs = []
    for line in content.splitlines():
        for token in iter_ref_tokens(line):
            if token.ref.ref:
                refs.append(token.ref)
    return refs
