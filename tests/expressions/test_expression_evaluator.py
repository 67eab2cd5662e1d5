"""
Tests for the expression evaluator.
"""

import pytest

from ptpl.expressions.evaluator import EvaluationError, ExpressionEvaluator
from ptpl.expressions.parser import ExpressionParser
from ptpl.values import MISSING, resolve_path


def _boom():
    raise RuntimeError("bad")


class TestExpressionEvaluator:

    def setup_method(self):
        self.parser = ExpressionParser()
        self.variables = {
            "n": 5,
            "zero": 0,
            "empty": "",
            "name": "Ann",
            "flag": True,
            "items": [],
            "user": {"role": "admin", "tags": ["a", "b"]},
        }
        self.functions = {
            "double": lambda x: x * 2,
            "echo": lambda x: x,
            "boom": _boom,
        }
        self.evaluator = ExpressionEvaluator(
            lambda path: resolve_path(self.variables, path),
            self.functions,
        )

    def eval(self, text):
        return self.evaluator.evaluate(self.parser.parse(text))

    def test_literal_and_path(self):
        assert self.eval("'x'") == "x"
        assert self.eval("user.role") == "admin"
        assert self.eval("user.tags.1") == "b"
        assert self.eval("nope") is MISSING

    def test_and_returns_operand(self):
        assert self.eval("zero && name") == 0
        assert self.eval("n && name") == "Ann"

    def test_or_returns_operand(self):
        assert self.eval("empty || name") == "Ann"
        assert self.eval("name || n") == "Ann"
        assert self.eval("empty || zero") == 0

    def test_not_returns_bool(self):
        assert self.eval("!name") is False
        assert self.eval("!items") is True
        assert self.eval("!nope") is True

    def test_comparisons(self):
        assert self.eval("n > 3") is True
        assert self.eval("n <= 4") is False
        assert self.eval("'5' == n") is True
        assert self.eval("'5' === n") is False
        assert self.eval("5 === n") is True
        assert self.eval("user.role != 'guest'") is True
        assert self.eval("nope == null") is True
        assert self.eval("'a' < 'b'") is True
        assert self.eval("flag > 0") is False

    def test_precedence(self):
        assert self.eval("zero || n > 3 && name == 'Ann'") is True
        assert self.eval("(zero || n) > 3") is True

    def test_call(self):
        assert self.eval("double(n)") == 10
        assert self.eval("double(double(1))") == 4

    def test_missing_argument_is_none(self):
        assert self.eval("echo(nope)") is None

    def test_unknown_function(self):
        with pytest.raises(EvaluationError, match="Unknown function: nope"):
            self.eval("nope()")

    def test_failing_function(self):
        with pytest.raises(EvaluationError, match="Function 'boom' failed: bad"):
            self.eval("boom()")

    def test_short_circuit_skips_call(self):
        assert self.eval("zero && boom()") == 0
        assert self.eval("n || boom()") == 5

    def test_test_truthiness(self):
        assert self.evaluator.test(self.parser.parse("items")) is False
        assert self.evaluator.test(self.parser.parse("user")) is True
