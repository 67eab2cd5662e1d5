"""
Tests for the template parser and AST utilities.
"""

import pytest

from ptpl.config import ParserConfig
from ptpl.errors import InvalidTemplate
from ptpl.template.lexer import tokenize_template
from ptpl.template.nodes import (
    ConditionalNode,
    IncludeNode,
    LoopNode,
    Position,
    RootNode,
    TextNode,
    VariableNode,
)
from ptpl.template.parser import (
    TemplateParser,
    ast_statistics,
    parse_loop_header,
    parse_template,
    validate_ast,
)
from ptpl.template.tokens import Token, TokenType


def parse(text, config=None):
    return parse_template(tokenize_template(text), config)


class TestTemplateParser:

    def test_text_and_variable(self):
        root = parse("Hello ${name}")

        assert isinstance(root, RootNode)
        assert len(root.children) == 2
        text, var = root.children
        assert isinstance(text, TextNode) and text.text == "Hello "
        assert isinstance(var, VariableNode) and var.expression == "name"
        assert var.position == Position(1, 7, 6)

    def test_conditional_with_else(self):
        root = parse("${#if ok}yes${else}no${/if}")
        node = root.children[0]

        assert isinstance(node, ConditionalNode)
        assert node.condition == "ok"
        assert [c.text for c in node.children] == ["yes"]
        assert [c.text for c in node.else_children] == ["no"]

    def test_conditional_without_else(self):
        node = parse("${#if ok}yes${/if}").children[0]
        assert node.else_children == []

    def test_nested_blocks(self):
        root = parse("${#each users}${#if user.active}${user.name}${/if}${/each}")
        loop = root.children[0]

        assert isinstance(loop, LoopNode)
        assert (loop.variable, loop.collection) == ("item", "users")
        inner = loop.children[0]
        assert isinstance(inner, ConditionalNode)
        assert isinstance(inner.children[0], VariableNode)

    def test_loop_with_named_variable(self):
        loop = parse("${#each user in users}${user}${/each}").children[0]
        assert (loop.variable, loop.collection) == ("user", "users")

    def test_include(self):
        node = parse("${include header}").children[0]
        assert isinstance(node, IncludeNode)
        assert node.name == "header"

    def test_empty_include(self):
        with pytest.raises(InvalidTemplate, match="Empty include directive"):
            parse("${include}")

    def test_empty_variable(self):
        with pytest.raises(InvalidTemplate) as exc:
            parse("${ }")
        assert str(exc.value) == "Empty variable at 1:1"

    def test_empty_variable_allowed(self):
        root = parse("${ }", ParserConfig(allow_empty_variables=True))
        assert root.children[0].expression == ""

    def test_unclosed_conditional(self):
        with pytest.raises(InvalidTemplate) as exc:
            parse("a ${#if x}b")
        assert str(exc.value) == "Unclosed conditional block at 1:3"

    def test_unclosed_loop(self):
        with pytest.raises(InvalidTemplate, match="Unclosed loop block"):
            parse("${#each xs}b")

    def test_stray_terminator(self):
        with pytest.raises(InvalidTemplate) as exc:
            parse("${/each}")
        assert str(exc.value) == "Unexpected loop_end token at 1:1"

    def test_stray_else(self):
        with pytest.raises(InvalidTemplate, match="Unexpected conditional_else token"):
            parse("a${else}b")

    def test_foreign_terminator_inside_conditional(self):
        with pytest.raises(InvalidTemplate, match="Unexpected loop_end token inside conditional block at 1:9") as exc:
            parse("${#if a}${/each}${/if}")
        assert exc.value.details == {"blockLine": 1, "blockColumn": 1}

    def test_foreign_terminator_inside_loop(self):
        with pytest.raises(InvalidTemplate, match="Unexpected conditional_end token inside loop block"):
            parse("${#each a}${/if}${/each}")

    def test_multiple_else(self):
        with pytest.raises(InvalidTemplate, match="Multiple else blocks"):
            parse("${#if a}1${else}2${else}3${/if}")

    def test_max_depth(self):
        config = ParserConfig(max_depth=2)
        parse("${#if a}${#if b}x${/if}${/if}", config)
        with pytest.raises(InvalidTemplate, match=r"Maximum nesting depth \(2\) exceeded"):
            parse("${#if a}${#if b}${#if c}x${/if}${/if}${/if}", config)

    def test_token_stream_must_end_with_eof(self):
        with pytest.raises(InvalidTemplate, match="must end with EOF"):
            TemplateParser().parse([Token(TokenType.TEXT, "x", 1, 1, 0, 1)])

    def test_parser_is_reusable(self):
        parser = TemplateParser()
        first = parser.parse(tokenize_template("${a}"))
        second = parser.parse(tokenize_template("${b}"))
        assert first.children[0].expression == "a"
        assert second.children[0].expression == "b"


class TestLoopHeader:

    def test_default_variable(self):
        assert parse_loop_header("items") == ("item", "items")

    def test_named_variable(self):
        assert parse_loop_header("  row in table.rows ") == ("row", "table.rows")

    @pytest.mark.parametrize("header", ["a in b in c", "in items", "1x in items", "x in", ""])
    def test_invalid_headers(self, header):
        with pytest.raises(InvalidTemplate, match="Invalid loop expression"):
            parse_loop_header(header)

    def test_invalid_header_in_template(self):
        with pytest.raises(InvalidTemplate) as exc:
            parse("\n${#each a in b in c}${/each}")
        assert exc.value.line == 2
        assert str(exc.value) == "Invalid loop expression: 'a in b in c' at 2:1"

    @pytest.mark.parametrize("header, expected", [
        ('pick("x in y")', ("item", 'pick("x in y")')),
        ("v in pick('a in b')", ("v", "pick('a in b')")),
        ("v in pick(xs, in_stock)", ("v", "pick(xs, in_stock)")),
    ])
    def test_in_inside_literals_and_calls(self, header, expected):
        assert parse_loop_header(header) == expected


class TestAstUtilities:

    def test_validate_ast_accepts_parsed_tree(self):
        result = validate_ast(parse("${#if a}${b}${else}c${/if}${#each xs}${item}${/each}"))
        assert result.valid
        assert result.errors == []

    def test_validate_ast_reports_empty_condition(self):
        root = RootNode(children=[ConditionalNode("", position=Position(1, 1, 0))])
        result = validate_ast(root)
        assert not result.valid
        assert result.errors == ["Conditional node missing condition at position 1:1"]

    def test_validate_ast_reports_bad_loop_variable(self):
        root = RootNode(children=[LoopNode("1x", "items", position=Position(2, 4, 10))])
        result = validate_ast(root)
        assert result.errors == ["Invalid loop variable '1x' at position 2:4"]

    def test_validate_ast_depth(self):
        root = parse("${#if a}${#if b}x${/if}${/if}")
        assert not validate_ast(root, max_depth=2).valid
        assert validate_ast(root, max_depth=3).valid

    def test_statistics(self):
        stats = ast_statistics(parse("a${#if x}${y}${/if}"))
        assert stats.total_nodes == 4
        assert stats.node_counts == {"root": 1, "text": 1, "conditional": 1, "variable": 1}
        assert stats.max_depth == 2

    def test_to_dict(self):
        root = parse("a${#if x}${y}${/if}")
        data = root.to_dict()

        assert data["type"] == "root"
        assert data["children"][0] == {"type": "text", "line": 1, "column": 1, "text": "a"}
        cond = data["children"][1]
        assert cond["condition"] == "x"
        assert cond["children"][0]["expression"] == "y"
        assert cond["elseChildren"] == []
