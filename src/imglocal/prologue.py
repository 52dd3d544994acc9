"""Import insertion for a document's prologue (frontmatter script).

Import statements are located with a small token scanner rather than a regex:
strings, template literals and comments are skipped, so text that merely
looks like an import inside them is never touched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from imglocal.models import BindingCollision, PrologueEdit

_IDENT = re.compile(r"[A-Za-z_$][\w$]*")
_COMMENTS = re.compile(r"/\*.*?\*/|//[^\n]*", re.DOTALL)
_QUOTES = "'\""


@dataclass(frozen=True)
class ImportStatement:
    """A static import found in prologue text.

    Attributes:
        start: Offset of the ``import`` keyword
        end: Offset just past the specifier's closing quote
        specifier: Module path, without quotes
        default: Default binding, if any
        namespace: ``* as name`` binding, if any
        named: Local names bound inside braces
        brace_span: Offsets of ``{`` and ``}``, if the statement has braces
    """

    start: int
    end: int
    specifier: str
    default: str | None = None
    namespace: str | None = None
    named: tuple[str, ...] = ()
    brace_span: tuple[int, int] | None = None

    @property
    def bindings(self) -> tuple[str, ...]:
        """Every local name this statement declares."""
        names = [n for n in (self.default, self.namespace) if n]
        return (*names, *self.named)


@dataclass(frozen=True)
class InsertResult:
    """Result of a single import insertion.

    Attributes:
        text: Prologue text after the insertion (unchanged on no-op/collision)
        changed: Whether text differs from the input
        binding: Name the module is reachable under, None on collision
        collision: Set when the binding is already taken by another module
    """

    text: str
    changed: bool
    binding: str | None = None
    collision: BindingCollision | None = None


@dataclass
class PrologueResult:
    """Result of flushing a PrologueEdit."""

    text: str
    changed: bool = False
    bindings: dict[str, str] = field(default_factory=dict)  # module path -> binding
    collisions: list[BindingCollision] = field(default_factory=list)


def _skip_trivia(source: str, i: int) -> int:
    """Skip whitespace and comments starting at i."""
    n = len(source)
    while i < n:
        if source[i].isspace():
            i += 1
        elif source.startswith("//", i):
            newline = source.find("\n", i)
            i = n if newline == -1 else newline + 1
        elif source.startswith("/*", i):
            close = source.find("*/", i + 2)
            i = n if close == -1 else close + 2
        else:
            break
    return i


def _skip_string(source: str, i: int) -> int:
    """Return the offset just past the string literal opening at i."""
    quote = source[i]
    n = len(source)
    i += 1
    while i < n:
        c = source[i]
        if c == "\\":
            i += 2
            continue
        if c == quote:
            return i + 1
        if c == "\n" and quote != "`":
            # Unterminated single-line string
            return i
        i += 1
    return n


def _read_identifier(source: str, i: int) -> tuple[str, int] | None:
    match = _IDENT.match(source, i)
    if match is None:
        return None
    return match.group(0), match.end()


def _find_closing_brace(source: str, i: int) -> int | None:
    """Return the offset of the ``}`` matching the ``{`` at i."""
    n = len(source)
    i += 1
    while i < n:
        c = source[i]
        if c in _QUOTES or c == "`":
            i = _skip_string(source, i)
        elif source.startswith("//", i) or source.startswith("/*", i):
            i = _skip_trivia(source, i)
        elif c == "}":
            return i
        else:
            i += 1
    return None


def _last_token_end(source: str, start: int, end: int) -> int | None:
    """Return the offset just past the last non-comment token in source[start:end]."""
    last = None
    i = start
    while True:
        i = _skip_trivia(source, i)
        if i >= end:
            return last
        i += 1
        last = i


def _parse_named(inner: str) -> tuple[str, ...]:
    names = []
    for part in _COMMENTS.sub(" ", inner).split(","):
        tokens = part.split()
        if not tokens:
            continue
        if tokens[0] == "type" and len(tokens) > 1:
            tokens = tokens[1:]
        # "a as b" binds b
        names.append(tokens[-1])
    return tuple(names)


def _parse_import(source: str, start: int) -> ImportStatement | None:
    """Parse the import statement whose keyword starts at start."""
    n = len(source)
    i = _skip_trivia(source, start + len("import"))
    if i >= n or source[i] in "(.":
        # import() / import.meta
        return None

    if source[i] in _QUOTES:
        end = _skip_string(source, i)
        return ImportStatement(start=start, end=end, specifier=source[i + 1 : end - 1])

    default = namespace = None
    named: tuple[str, ...] = ()
    brace_span = None

    ident = _read_identifier(source, i)
    if ident is not None and ident[0] == "type":
        after = _skip_trivia(source, ident[1])
        following = _read_identifier(source, after)
        if after < n and (source[after] in "{*" or (following and following[0] != "from")):
            i = after
            ident = following

    if ident is not None:
        default, i = ident
        i = _skip_trivia(source, i)
        if source.startswith(",", i):
            i = _skip_trivia(source, i + 1)

    if source.startswith("*", i):
        as_kw = _read_identifier(source, _skip_trivia(source, i + 1))
        if as_kw is None or as_kw[0] != "as":
            return None
        alias = _read_identifier(source, _skip_trivia(source, as_kw[1]))
        if alias is None:
            return None
        namespace, i = alias
        i = _skip_trivia(source, i)
    elif source.startswith("{", i):
        close = _find_closing_brace(source, i)
        if close is None:
            return None
        brace_span = (i, close)
        named = _parse_named(source[i + 1 : close])
        i = _skip_trivia(source, close + 1)

    if default is None and namespace is None and brace_span is None:
        return None

    from_kw = _read_identifier(source, i)
    if from_kw is None or from_kw[0] != "from":
        return None
    i = _skip_trivia(source, from_kw[1])
    if i >= n or source[i] not in _QUOTES:
        return None
    end = _skip_string(source, i)

    return ImportStatement(
        start=start,
        end=end,
        specifier=source[i + 1 : end - 1],
        default=default,
        namespace=namespace,
        named=named,
        brace_span=brace_span,
    )


def scan_imports(source: str) -> list[ImportStatement]:
    """Find the static import statements of prologue text, in order."""
    statements: list[ImportStatement] = []
    n = len(source)
    i = 0
    while i < n:
        c = source[i]
        if c in _QUOTES or c == "`":
            i = _skip_string(source, i)
            continue
        if source.startswith("//", i) or source.startswith("/*", i):
            i = _skip_trivia(source, i)
            continue
        match = _IDENT.match(source, i)
        if match is None:
            i += 1
            continue
        prev = source[i - 1] if i > 0 else ""
        if match.group(0) == "import" and not (prev and (prev.isalnum() or prev in "_$.")):
            statement = _parse_import(source, i)
            if statement is not None:
                statements.append(statement)
                i = statement.end
                continue
        i = match.end()
    return statements


def _insert_after_last_import(
    source: str, statements: list[ImportStatement], statement: str
) -> str:
    if not statements:
        return f"\n{statement}\n{source.lstrip()}"

    newline = source.find("\n", statements[-1].end)
    if newline == -1:
        return f"{source}\n{statement}\n"
    position = newline + 1
    return f"{source[:position]}{statement}\n{source[position:]}"


def _collision_for(
    statements: list[ImportStatement], binding: str, module_path: str
) -> BindingCollision | None:
    for statement in statements:
        if statement.specifier != module_path and binding in statement.bindings:
            return BindingCollision(
                binding_name=binding,
                existing_module=statement.specifier,
                requested_module=module_path,
            )
    return None


def add_default_import(source: str, binding: str, module_path: str) -> InsertResult:
    """Add ``import binding from "module_path";`` to prologue text.

    No-op when module_path is already imported anywhere; the result then
    carries the binding actually declared for it. A binding already bound to
    a different module yields a collision and the text is left unchanged.

    Examples:
        >>> add_default_import('import a from "./a.png";\\n', "b", "./b.png").text
        'import a from "./a.png";\\nimport b from "./b.png";\\n'
    """
    statements = scan_imports(source)

    existing = [s for s in statements if s.specifier == module_path]
    if existing:
        declared = next((s.default for s in existing if s.default), None)
        if declared is None:
            logger.debug(f"[Prologue] {module_path} is imported without a default binding")
        return InsertResult(source, False, declared)

    collision = _collision_for(statements, binding, module_path)
    if collision is not None:
        return InsertResult(source, False, None, collision)

    text = _insert_after_last_import(source, statements, f'import {binding} from "{module_path}";')
    return InsertResult(text, True, binding)


def merge_named_import(source: str, specifier: str, name: str) -> InsertResult:
    """Merge ``name`` into the braces of the import from ``specifier``.

    Adds ``import { name } from "specifier";`` when no statement for
    specifier has braces to merge into.

    Examples:
        >>> merge_named_import('import { Picture } from "astro:assets";', "astro:assets", "Image").text
        'import { Picture, Image } from "astro:assets";'
    """
    statements = scan_imports(source)
    targets = [s for s in statements if s.specifier == specifier]

    if any(name in s.named for s in targets):
        return InsertResult(source, False, name)

    collision = _collision_for(statements, name, specifier)
    if collision is not None:
        return InsertResult(source, False, None, collision)

    for statement in targets:
        if statement.brace_span is None:
            continue
        open_brace, close_brace = statement.brace_span
        last = _last_token_end(source, open_brace + 1, close_brace)
        if last is None:
            text = f"{source[: open_brace + 1]} {name} {source[close_brace:]}"
        else:
            insertion = f" {name}" if source[last - 1] == "," else f", {name}"
            text = f"{source[:last]}{insertion}{source[last:]}"
        return InsertResult(text, True, name)

    text = f'\nimport {{ {name} }} from "{specifier}";\n{source.lstrip()}'
    return InsertResult(text, True, name)


def apply_prologue_edits(source: str, edits: PrologueEdit) -> PrologueResult:
    """Flush every queued import into prologue text, in queue order."""
    result = PrologueResult(text=source)
    for entry in edits:
        if entry.named:
            inserted = merge_named_import(result.text, entry.module_path, entry.binding_name)
        else:
            inserted = add_default_import(result.text, entry.binding_name, entry.module_path)

        if inserted.collision is not None:
            logger.warning(
                f"[Prologue] Binding '{inserted.collision.binding_name}' already imported "
                f"from '{inserted.collision.existing_module}'"
            )
            result.collisions.append(inserted.collision)
            continue
        if inserted.binding is not None:
            result.bindings[entry.module_path] = inserted.binding
        if inserted.changed:
            result.text = inserted.text
            result.changed = True
    return result
