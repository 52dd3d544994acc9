"""Frontmatter-fenced markup documents as immutable trees.

A component document optionally starts with a prologue fenced by ``---``
lines; everything after the closing fence is the body::

    ---
    import hero from "../assets/images/hero.png";
    ---
    <img src={hero.src} />
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

_FENCE = "---"
_OPENING = re.compile(r"(\s*)---[ \t]*(?=\r?\n)")
_CLOSING = re.compile(r"^---[ \t]*\r?$", re.MULTILINE)


@dataclass(frozen=True)
class PrologueNode:
    """The text between the two fences, newlines included."""

    value: str


@dataclass(frozen=True)
class MarkupTree:
    """Parsed document. Mutations return new trees."""

    body: str
    prologue: PrologueNode | None = None
    leading: str = ""

    def with_prologue(self, value: str) -> MarkupTree:
        """Return a tree whose prologue text is value.

        Creating a prologue where none existed keeps the body on its own line.
        """
        body = self.body
        if self.prologue is None and not body.startswith("\n"):
            body = "\n" + body
        return replace(self, prologue=PrologueNode(value), body=body)

    def with_body(self, body: str) -> MarkupTree:
        return replace(self, body=body)


class FrontmatterCodec:
    """Parses and serializes ``---``-fenced documents.

    Serializing an unmodified tree reproduces the input byte for byte.
    """

    def parse_to_tree(self, text: str) -> MarkupTree:
        opening = _OPENING.match(text)
        if opening is None:
            return MarkupTree(body=text)

        closing = _CLOSING.search(text, opening.end())
        if closing is None:
            # Unterminated fence: treat the whole text as body
            return MarkupTree(body=text)

        leading = opening.group(1)
        value_start = len(leading) + len(_FENCE)
        return MarkupTree(
            body=text[closing.start() + len(_FENCE) :],
            prologue=PrologueNode(text[value_start : closing.start()]),
            leading=leading,
        )

    def serialize_from_tree(self, tree: MarkupTree) -> str:
        if tree.prologue is None:
            return tree.leading + tree.body
        return f"{tree.leading}{_FENCE}{tree.prologue.value}{_FENCE}{tree.body}"

    def find_prologue_node(self, tree: MarkupTree) -> PrologueNode | None:
        return tree.prologue
