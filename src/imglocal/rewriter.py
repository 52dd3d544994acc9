"""Rewriting of remote references to local assets.

Two strategies are supported:

- path: every complete occurrence of a resolved URL becomes the asset's
  document-relative path
- import: every ``src``/``srcset`` attribute whose value is a resolved URL
  becomes ``attr={binding.src}`` and the binding is imported in the prologue;
  a srcset list becomes a template literal with one binding per candidate

Replacements are always computed against the original text and applied in a
single pass, so re-running the rewriter on its own output is a no-op.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from loguru import logger

from imglocal.interfaces import TreeCodec
from imglocal.models import (
    BindingCollision,
    Document,
    DocumentId,
    LocalBinding,
    PrologueEdit,
    RewriteStrategy,
)
from imglocal.prologue import apply_prologue_edits
from imglocal.tree import FrontmatterCodec


@dataclass
class RewriteResult:
    """Outcome of rewriting one document."""

    text: str
    changed: bool = False
    replacements: int = 0
    collisions: list[BindingCollision] = field(default_factory=list)


@dataclass(frozen=True)
class _Candidate:
    start: int
    end: int
    binding: LocalBinding
    attribute: str = ""
    # (url, descriptor) pairs of a srcset list, in order
    srcset: tuple[tuple[str, str], ...] = ()

    def used(self, bindings: Mapping[str, LocalBinding]) -> list[LocalBinding]:
        if not self.srcset:
            return [self.binding]
        return [bindings[url] for url, _ in self.srcset if url in bindings]


# A match must not be followed by more URL text; sentence punctuation is
# allowed only when nothing URL-like follows it
_URL_END = r"(?![\w/?#%&=+~@$*-]|[.,:;!](?=[\w/?#%&=+~@$*-]))"


def _occurrence_pattern(url: str) -> re.Pattern[str]:
    return re.compile(re.escape(url) + _URL_END)


def _attribute_pattern(url: str) -> re.Pattern[str]:
    return re.compile(
        r"(?<![\w-])(src|srcset)(\s*=\s*)([\"'])" + re.escape(url) + r"\3",
        re.IGNORECASE,
    )


_SRCSET_ATTR = re.compile(
    r"(?<![\w-])(srcset)(\s*=\s*)([\"'])(.*?)\3", re.IGNORECASE | re.DOTALL
)


def _srcset_entries(value: str) -> tuple[tuple[str, str], ...]:
    entries = []
    for part in value.split(","):
        tokens = part.split()
        if tokens:
            entries.append((tokens[0], " ".join(tokens[1:])))
    return tuple(entries)


def _template_text(value: str) -> str:
    return value.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def _select(candidates: Iterable[_Candidate]) -> list[_Candidate]:
    """Drop overlapping candidates: longest wins at the same start, then first-come."""
    accepted: list[_Candidate] = []
    for candidate in sorted(candidates, key=lambda c: (c.start, c.start - c.end)):
        if accepted and candidate.start < accepted[-1].end:
            continue
        accepted.append(candidate)
    return accepted


class ReferenceRewriter:
    """Applies a rewrite strategy to one document at a time."""

    def __init__(
        self,
        codec: TreeCodec | None = None,
        assets_module: str = "astro:assets",
        component_imports: Iterable[str] = (),
    ) -> None:
        """Initialize the rewriter.

        Args:
            codec: Tree codec for documents with a prologue (import strategy)
            assets_module: Module that component_imports are merged into
            component_imports: Named imports added once an attribute is rewritten
        """
        self.codec = codec or FrontmatterCodec()
        self.assets_module = assets_module
        self.component_imports = tuple(component_imports)

    def rewrite(
        self,
        document_id: DocumentId,
        text: str,
        bindings: Mapping[str, LocalBinding],
        strategy: RewriteStrategy,
    ) -> RewriteResult:
        """Rewrite text using bindings keyed by the URL as written in the document."""
        if strategy == RewriteStrategy.IMPORT:
            result = self.rewrite_imports(document_id, text, bindings)
        else:
            result = self.rewrite_paths(document_id, text, bindings)
        if result.changed:
            logger.debug(
                f"[Rewrite] {document_id}: {result.replacements} replacement(s) "
                f"({strategy.value} strategy)"
            )
        return result

    def rewrite_paths(
        self,
        document_id: DocumentId,
        text: str,
        bindings: Mapping[str, LocalBinding],
    ) -> RewriteResult:
        """Replace every complete occurrence of each URL with its relative path.

        An occurrence that continues into a longer URL is left alone.
        """
        candidates = [
            _Candidate(match.start(), match.end(), binding)
            for url, binding in bindings.items()
            if url
            for match in _occurrence_pattern(url).finditer(text)
        ]

        document = Document(document_id, text)
        for candidate in _select(candidates):
            document.add(
                candidate.start, candidate.end, candidate.binding.document_relative_path
            )

        new_text = document.materialize()
        return RewriteResult(
            text=new_text,
            changed=new_text != text,
            replacements=len(document.replacements),
        )

    def rewrite_imports(
        self,
        document_id: DocumentId,
        text: str,
        bindings: Mapping[str, LocalBinding],
    ) -> RewriteResult:
        """Turn attribute values into binding references and import the bindings."""
        tree = self.codec.parse_to_tree(text)
        body = tree.body

        candidates = [
            _Candidate(match.start(), match.end(), binding, match.group(1) + match.group(2))
            for url, binding in bindings.items()
            if url
            for match in _attribute_pattern(url).finditer(body)
        ]
        candidates.extend(self._srcset_candidates(body, bindings))
        accepted = _select(candidates)
        if not accepted:
            return RewriteResult(text=text)

        # Only bindings that are used get imported, in order of first use
        edits = PrologueEdit()
        for candidate in sorted(accepted, key=lambda c: c.start):
            for binding in candidate.used(bindings):
                edits.add(binding.binding_name, binding.document_relative_path)
        for name in self.component_imports:
            edits.add_named(name, self.assets_module)

        prologue = self.codec.find_prologue_node(tree)
        flushed = apply_prologue_edits(prologue.value if prologue else "", edits)
        collisions = [replace(c, document_id=document_id) for c in flushed.collisions]

        document = Document(document_id, body)
        for candidate in accepted:
            if candidate.srcset:
                expression = _srcset_expression(candidate, bindings, flushed.bindings)
            else:
                name = flushed.bindings.get(candidate.binding.document_relative_path)
                expression = f"{name}.src" if name else None
            if expression is None:
                # Collided or imported without a default binding: keep the remote URL
                continue
            document.add(candidate.start, candidate.end, f"{candidate.attribute}{{{expression}}}")

        if not document.replacements:
            return RewriteResult(text=text, collisions=collisions)

        new_tree = tree.with_body(document.materialize())
        if flushed.changed or prologue is None:
            new_tree = new_tree.with_prologue(flushed.text)
        new_text = self.codec.serialize_from_tree(new_tree)
        return RewriteResult(
            text=new_text,
            changed=new_text != text,
            replacements=len(document.replacements),
            collisions=collisions,
        )

    @staticmethod
    def _srcset_candidates(
        body: str, bindings: Mapping[str, LocalBinding]
    ) -> list[_Candidate]:
        """Candidates for srcset lists (several URLs or descriptors) with a bound URL."""
        candidates = []
        for match in _SRCSET_ATTR.finditer(body):
            value = match.group(4)
            if value in bindings:
                # Plain single URL, handled by the attribute pattern
                continue
            entries = _srcset_entries(value)
            bound = [bindings[url] for url, _ in entries if url in bindings]
            if not bound:
                continue
            candidates.append(
                _Candidate(
                    match.start(),
                    match.end(),
                    bound[0],
                    match.group(1) + match.group(2),
                    srcset=entries,
                )
            )
        return candidates


def _srcset_expression(
    candidate: _Candidate,
    bindings: Mapping[str, LocalBinding],
    declared: Mapping[str, str],
) -> str | None:
    """Build a template literal for a srcset list, or None if nothing resolved.

    ``a.png 1x, b.png 2x`` becomes ```${a.src} 1x, ${b.src} 2x` ``.
    """
    parts = []
    resolved = False
    for url, descriptor in candidate.srcset:
        binding = bindings.get(url)
        name = declared.get(binding.document_relative_path) if binding else None
        if name:
            resolved = True
            part = f"${{{name}.src}}"
        else:
            part = _template_text(url)
        parts.append(f"{part} {descriptor}" if descriptor else part)
    if not resolved:
        return None
    return "`" + ", ".join(parts) + "`"
