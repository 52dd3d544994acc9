"""Unit tests for the frontmatter tree codec."""

from __future__ import annotations

import pytest

from imglocal.tree import FrontmatterCodec, MarkupTree


@pytest.fixture
def codec() -> FrontmatterCodec:
    return FrontmatterCodec()


class TestFrontmatterCodec:
    """Tests for parse/serialize/find-prologue."""

    def test_parse_with_prologue(self, codec: FrontmatterCodec) -> None:
        text = '---\nimport Layout from "../layouts/Layout.astro";\n---\n<Layout />\n'
        tree = codec.parse_to_tree(text)

        prologue = codec.find_prologue_node(tree)
        assert prologue is not None
        assert prologue.value == '\nimport Layout from "../layouts/Layout.astro";\n'
        assert tree.body == "\n<Layout />\n"
        assert codec.serialize_from_tree(tree) == text

    def test_parse_without_prologue(self, codec: FrontmatterCodec) -> None:
        text = "<html><body><img src='x.png'></body></html>"
        tree = codec.parse_to_tree(text)

        assert codec.find_prologue_node(tree) is None
        assert codec.serialize_from_tree(tree) == text

    def test_crlf_round_trip(self, codec: FrontmatterCodec) -> None:
        text = "---\r\nconst a = 1;\r\n---\r\n<p>{a}</p>\r\n"
        tree = codec.parse_to_tree(text)

        assert tree.prologue is not None
        assert codec.serialize_from_tree(tree) == text

    def test_unterminated_fence_is_body(self, codec: FrontmatterCodec) -> None:
        text = "---\nconst a = 1;\n<p>no closing fence</p>\n"
        tree = codec.parse_to_tree(text)

        assert tree.prologue is None
        assert codec.serialize_from_tree(tree) == text

    def test_dashes_inside_body_are_not_a_fence(self, codec: FrontmatterCodec) -> None:
        text = "---\nconst a = 1;\n---\n<p>a</p>\n---\n<p>b</p>\n"
        tree = codec.parse_to_tree(text)

        assert tree.prologue is not None
        assert tree.prologue.value == "\nconst a = 1;\n"
        assert tree.body == "\n<p>a</p>\n---\n<p>b</p>\n"

    def test_new_prologue(self, codec: FrontmatterCodec) -> None:
        """A prologue added to a document without one gets both fences."""
        tree = codec.parse_to_tree("<img src={hero.src}>")
        updated = tree.with_prologue('\nimport hero from "./hero.png";\n')

        assert codec.serialize_from_tree(updated) == (
            '---\nimport hero from "./hero.png";\n---\n<img src={hero.src}>'
        )

    def test_trees_are_immutable(self, codec: FrontmatterCodec) -> None:
        tree = codec.parse_to_tree("---\nconst a = 1;\n---\n<p/>")
        changed = tree.with_body("\n<div/>").with_prologue("\nconst b = 2;\n")

        assert tree.body == "\n<p/>"
        assert tree.prologue is not None and tree.prologue.value == "\nconst a = 1;\n"
        assert codec.serialize_from_tree(changed) == "---\nconst b = 2;\n---\n<div/>"
        assert isinstance(changed, MarkupTree)
