from dataclasses import dataclass

import pytest

from ptpl.compiler import (
    AppendText,
    Branch,
    EmitValue,
    IncludeCall,
    Iterate,
    TemplateCompiler,
    collect_expression_issues,
    compile_template,
)
from ptpl.environment import Environment
from ptpl.errors import InvalidTemplate, RenderError
from ptpl.template.lexer import tokenize_template
from ptpl.template.nodes import Position, RootNode, TemplateNode
from ptpl.template.parser import parse_template


def ast(text):
    return parse_template(tokenize_template(text))


@dataclass(frozen=True)
class _StrangeNode(TemplateNode):
    node_type = "strange"


class TestTemplateCompiler:

    def setup_method(self):
        self.env = Environment()

    def compile(self, text):
        return compile_template(ast(text), self.env.snapshot())

    def test_instructions(self):
        out = self.compile("Hello ${name | upper}${#if x}a${else}b${/if}${#each xs}.${/each}${include part}")
        ins = out.procedure.instructions

        assert isinstance(ins[0], AppendText) and ins[0].text == "Hello "
        assert isinstance(ins[1], EmitValue)
        assert ins[1].source == "name"
        assert [f.name for f in ins[1].filters] == ["upper"]
        assert isinstance(ins[2], Branch)
        assert isinstance(ins[3], Iterate) and ins[3].variable == "item"
        assert isinstance(ins[4], IncludeCall) and ins[4].name == "part"
        assert out.procedure.count() == 8
        assert out.compile_time_ms >= 0

    def test_dependencies_ordered_and_unique(self):
        out = self.compile("${b}${a}${b.c}${a}${#if b && d}${/if}")
        assert out.dependencies == ("b", "a", "b.c", "d")

    def test_loop_locals_are_not_dependencies(self):
        out = self.compile(
            "${#each user in users}${user.name}${user_index}${user_first}${this}${other}${/each}"
        )
        assert out.dependencies == ("users", "other")

    def test_nested_loop_collection_uses_outer_binding(self):
        out = self.compile("${#each user in users}${#each tag in user.tags}${tag}${/each}${/each}")
        assert out.dependencies == ("users",)

    def test_loop_binding_does_not_leak(self):
        out = self.compile("${#each xs}${item}${/each}${item}")
        assert out.dependencies == ("xs", "item")

    def test_unknown_filter(self):
        with pytest.raises(RenderError, match="Unknown filter: shout") as exc:
            self.compile("${name | shout}")
        assert exc.value.details == {"filter": "shout"}
        assert (exc.value.line, exc.value.column) == (1, 1)

    def test_registered_filter_resolves(self):
        self.env.add_filter("shout", lambda v: f"{v}!")
        out = self.compile("${name | shout}")
        assert out.procedure.instructions[0].filters[0].func("hi") == "hi!"
        assert out.procedure.revision == 1

    def test_unknown_function(self):
        with pytest.raises(RenderError, match="Unknown function: nope") as exc:
            self.compile("${#if nope()}x${/if}")
        assert exc.value.details == {"function": "nope"}

    def test_functions_are_captured(self):
        out = self.compile("${random(1, 2)}")
        assert set(out.procedure.functions) == {"random"}

    def test_empty_condition(self):
        with pytest.raises(InvalidTemplate, match="Empty condition in conditional block"):
            self.compile("${#if }x${/if}")

    def test_syntax_error_has_node_position(self):
        with pytest.raises(InvalidTemplate, match="Invalid expression 'a b': Unexpected token 'b'") as exc:
            self.compile("\n  ${a b}")
        assert (exc.value.line, exc.value.column) == (2, 3)

    def test_unknown_node_type(self):
        root = RootNode(children=[_StrangeNode(position=Position(3, 1, 0))])
        with pytest.raises(RenderError, match="Unknown node type: strange"):
            TemplateCompiler(self.env.snapshot()).compile(root)

    def test_compiler_is_reusable(self):
        compiler = TemplateCompiler(self.env.snapshot())
        first = compiler.compile(ast("${a}"))
        second = compiler.compile(ast("${b}"))
        assert first.dependencies == ("a",)
        assert second.dependencies == ("b",)


def test_collect_expression_issues():
    root = ast("${x | nope}${#if bad(}y${/if}${f()}")
    errors, warnings = collect_expression_issues(root, Environment().snapshot())

    assert len(errors) == 1
    assert errors[0].startswith("Invalid expression 'bad(' at 1:12:")
    assert warnings == ["Unknown filter: nope at 1:1", "Unknown function: f at 1:30"]


def test_collect_expression_issues_clean_template():
    errors, warnings = collect_expression_issues(ast("${a | upper}${#each xs}${item}${/each}"), Environment().snapshot())
    assert errors == []
    assert warnings == []
