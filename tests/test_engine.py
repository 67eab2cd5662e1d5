"""
End-to-end behaviour of the template engine.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from ptpl import CacheConfig, EngineConfig, Environment, RenderOptions, TemplateEngine
from ptpl.errors import InvalidTemplate, RenderError
from ptpl.template.lexer import TemplateLexer


class TestRenderBasics:

    def test_directive_free_template_is_unchanged(self, engine):
        text = "Plain text with {braces}, $dollars and\nnew lines."
        result = engine.render(text)
        assert result.success
        assert result.output == text

    def test_variable_is_stringified(self, engine):
        result = engine.render("${a}|${b}|${c}|${d}", {"a": 1.0, "b": True, "c": None, "d": [1, 2]})
        assert result.output == "1|true||[1,2]"

    def test_unbound_variable_renders_empty(self, engine):
        result = engine.render("Hi ${name}!")
        assert result.output == "Hi !"
        assert result.missing_variables == ["name"]
        assert result.used_variables == []

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "A"),
            (False, "B"),
            (1, "A"),
            (0, "B"),
            (0.5, "A"),
            ("text", "A"),
            ("", "B"),
            ([], "B"),
            (["x"], "A"),
            (None, "B"),
        ],
    )
    def test_conditional_truthiness(self, engine, value, expected):
        assert engine.render("${#if x}A${else}B${/if}", {"x": value}).output == expected

    def test_conditional_with_comparison(self, engine):
        text = "${#if user.role == 'admin' && !user.banned}yes${else}no${/if}"
        assert engine.render(text, {"user": {"role": "admin"}}).output == "yes"
        assert engine.render(text, {"user": {"role": "admin", "banned": True}}).output == "no"

    def test_each_over_empty_list(self, engine):
        assert engine.render("${#each items}${item}${/each}", {"items": []}).output == ""

    def test_each_with_first_and_last(self, engine):
        text = "${#each items}${#if item_first}<${/if}${item}${#if item_last}>${else},${/if}${/each}"
        assert engine.render(text, {"items": ["a", "b"]}).output == "<a,b>"

    def test_each_over_call_with_in_inside_string(self, engine):
        engine.add_function("pick", lambda text: text.split(" in "))
        assert engine.render('${#each pick("a in b")}${item}${/each}').output == "ab"

    def test_filters_apply_left_to_right(self, engine):
        assert engine.render("${x | upper | truncate:3}", {"x": "hello"}).output == "HEL..."
        assert engine.render("${x | truncate:3 | upper}", {"x": "hello"}).output == "HEL..."
        assert engine.render("${x | truncate:2 | default:'-'}", {"x": ""}).output == "-"

    def test_functions(self, engine):
        result = engine.render("${random(7, 7)}-${uuid() != ''}")
        assert result.output == "7-true"

    def test_comments_are_removed(self, engine):
        assert engine.render("a${!-- hidden ${x} --}b").output == "ab"

    def test_option_overrides(self, engine):
        result = engine.render("${x}", strict=True)
        assert result.error_code == "UNDEFINED_VARIABLE"

    def test_options_object(self, engine):
        result = engine.render("${x}", options=RenderOptions(default_values={"x": "d"}))
        assert result.output == "d"

    def test_invalid_template_is_reported_not_raised(self, engine):
        result = engine.render("${#if a}x")
        assert not result.success
        assert result.output == ""
        assert result.error_code == "INVALID_TEMPLATE"

    def test_near_zero_timeout(self, engine):
        text = "${#each rows}${#each cols}${item}${/each}${/each}"
        variables = {"rows": list(range(200)), "cols": list(range(200))}
        result = engine.render(text, variables, timeout_ms=0.001)

        assert result.error_code == "RENDER_TIMEOUT"
        assert result.output == ""


class TestProcessAndCache:

    def test_process_statistics(self, engine):
        result = engine.process("a${x}")
        st = result.statistics

        assert not st.cached
        assert st.token_count == 3
        assert st.node_count == 3
        assert st.dependency_count == 1
        assert st.total_time_ms >= st.lex_time_ms

    def test_dependencies_are_ordered_and_unique(self, engine):
        compiled = engine.compile("${b}${a}${#if a && c}${b}${/if}${#each xs}${item}${/each}")
        assert compiled.dependencies == ("b", "a", "c", "xs")

    def test_compile_is_idempotent(self, engine):
        first = engine.compile("${x | upper}${#if y}z${/if}", use_cache=False)
        second = engine.compile("${x | upper}${#if y}z${/if}", use_cache=False)

        assert first is not second
        assert first.id == second.id
        assert first.dependencies == second.dependencies
        assert first.procedure.instructions == second.procedure.instructions

    def test_second_render_uses_cache(self, engine, monkeypatch):
        text = "Hello ${name}"
        assert engine.render(text, {"name": "A"}).output == "Hello A"

        def fail(*args, **kwargs):
            raise AssertionError("template was tokenized again")

        monkeypatch.setattr(TemplateLexer, "tokenize", fail)
        assert engine.render(text, {"name": "B"}).output == "Hello B"

        stats = engine.cache_statistics()
        assert stats.entries == 1
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5

    def test_cached_process_result(self, engine):
        engine.process("${x}")
        again = engine.process("${x}")

        assert again.statistics.cached
        assert again.statistics.lex_time_ms == 0.0
        assert again.statistics.dependency_count == 1

    def test_cache_disabled(self):
        engine = TemplateEngine(EngineConfig(cache=CacheConfig(enabled=False)))
        engine.compile("${x}")
        engine.compile("${x}")
        stats = engine.cache_statistics()
        assert not stats.enabled
        assert stats.entries == 0

    def test_clear_cache(self, engine):
        engine.compile("a")
        engine.compile("b")
        assert engine.clear_cache() == 2
        assert engine.cache_statistics().entries == 0

    def test_process_raises_template_errors(self, engine):
        with pytest.raises(InvalidTemplate, match="Unclosed loop block"):
            engine.process("${#each xs}")

    def test_unexpected_failure_is_wrapped(self, engine, monkeypatch):
        def kaboom(self, root):
            raise RuntimeError("kaboom")

        monkeypatch.setattr("ptpl.engine.TemplateCompiler.compile", kaboom)
        with pytest.raises(RenderError, match="Template processing failed: kaboom"):
            engine.process("${x}")


class TestRegistries:

    def test_unregistered_filter_fails_compilation(self, engine):
        with pytest.raises(RenderError, match="Unknown filter: shout"):
            engine.compile("${x | shout}")
        result = engine.render("${x | shout}", {"x": "a"})
        assert "Unknown filter: shout" in result.error

    def test_add_filter_invalidates_cache(self, engine):
        engine.compile("${x}")
        engine.add_filter("shout", lambda v: f"{v}!")

        assert engine.cache_statistics().entries == 0
        assert engine.render("${x | shout}", {"x": "a"}).output == "a!"

    def test_shared_environment_change_reaches_other_engine(self):
        env = Environment()
        env.add_filter("shout", lambda v: f"{str(v).upper()}!")
        a = TemplateEngine(EngineConfig(), environment=env)
        b = TemplateEngine(EngineConfig(), environment=env)
        assert b.render("${x | shout}", {"x": "hi"}).output == "HI!"

        a.add_filter("shout", lambda v: f"{v}?")

        assert b.render("${x | shout}", {"x": "hi"}).output == "hi?"

    def test_direct_environment_change_drops_cached_template(self, engine):
        engine.add_filter("shout", lambda v: "A")
        assert engine.render("${x | shout}", {"x": "a"}).output == "A"
        assert engine.cache_statistics().entries == 1

        engine.environment.add_filter("shout", lambda v: "B")

        assert engine.render("${x | shout}", {"x": "a"}).output == "B"
        assert engine.process("${x | shout}").statistics.cached is True

    def test_remove_filter(self, engine):
        engine.add_filter("shout", lambda v: f"{v}!")
        engine.render("${x | shout}", {"x": "a"})

        assert engine.remove_filter("shout") is True
        assert engine.remove_filter("shout") is False
        assert not engine.render("${x | shout}", {"x": "a"}).success

    def test_custom_function(self, engine):
        engine.add_function("greet", lambda name: f"hi {name}")
        assert engine.render("${greet(user)}", {"user": "Ann"}).output == "hi Ann"
        assert engine.remove_function("greet") is True
        assert "greet" not in engine.functions()

    def test_registry_copies(self, engine):
        filters = engine.filters()
        filters.clear()
        assert "upper" in engine.filters()

    def test_engine_statistics(self, engine):
        engine.compile("${x}")
        stats = engine.engine_statistics()

        assert stats["cacheSize"] == 1
        assert stats["filterCount"] == 7
        assert stats["functionCount"] == 3
        assert stats["revision"] == 0
        assert stats["lexer"]["variable_start"] == "${"
        assert stats["render"]["timeout_ms"] == 5000.0


class TestIncludes:

    def test_include_shares_scope(self, includes):
        sources, loader = includes
        sources["header"] = "Hi ${name}"
        engine = TemplateEngine(include_loader=loader)

        result = engine.render("${include header}!", {"name": "Ann"})
        assert result.output == "Hi Ann!"
        assert result.used_variables == ["name"]

    def test_include_inside_loop_sees_loop_variable(self, includes):
        sources, loader = includes
        sources["row"] = "[${item}]"
        engine = TemplateEngine(include_loader=loader)

        result = engine.render("${#each xs}${include row}${/each}", {"xs": [1, 2]}, strict=True)
        assert result.output == "[1][2]"

    def test_missing_include(self, includes):
        _, loader = includes
        engine = TemplateEngine(include_loader=loader)
        result = engine.render("${include nope}")
        assert result.error == "Included template not found: nope"

    def test_recursive_include_is_bounded(self, includes):
        sources, loader = includes
        sources["loop"] = "x${include loop}"
        engine = TemplateEngine(EngineConfig(max_include_depth=3), include_loader=loader)

        result = engine.render("${include loop}")
        assert result.error == "Maximum include depth (3) exceeded while including 'loop'"

    def test_loader_failure(self):
        def loader(name):
            raise OSError("disk gone")

        engine = TemplateEngine(include_loader=loader)
        result = engine.render("${include part}")
        assert result.error == "Failed to load included template 'part': disk gone"

    def test_invalid_included_template(self, includes):
        sources, loader = includes
        sources["broken"] = "${#if x}"
        engine = TemplateEngine(include_loader=loader)

        result = engine.render("${include broken}")
        assert result.error_code == "INVALID_TEMPLATE"

    def test_no_loader(self, engine):
        result = engine.render("${include part}")
        assert "no include loader configured" in result.error


class TestValidate:

    def test_balanced_template(self, engine):
        report = engine.validate("${#if a}${#each xs}${item | upper}${/each}${else}none${/if}")
        assert report.valid
        assert report.errors == []
        assert report.warnings == []
        assert report.ast is not None

    def test_unclosed_block(self, engine):
        report = engine.validate("${#if a}x")
        assert not report.valid
        assert "Unclosed conditional blocks: 1" in report.errors
        assert "Unclosed conditional block at 1:1" in report.errors

    def test_lexer_error(self, engine):
        report = engine.validate("${x")
        assert not report.valid
        assert report.errors == ["Unclosed variable, expected '}' at 1:1"]
        assert report.tokens is None

    def test_expression_errors_and_warnings(self, engine):
        report = engine.validate("${a b}${x | shout}${include part}")

        assert not report.valid
        assert report.errors == ["Invalid expression 'a b' at 1:1: Unexpected token 'b'"]
        assert report.warnings == [
            "Unknown filter: shout at 1:7",
            "Include 'part' at 1:19 cannot be resolved: no include loader configured",
        ]

    def test_unknown_filter_is_only_a_warning(self, engine):
        report = engine.validate("${x | shout}")
        assert report.valid

    def test_include_with_loader_has_no_warning(self, includes):
        _, loader = includes
        report = TemplateEngine(include_loader=loader).validate("${include part}")
        assert report.warnings == []

    def test_to_dict(self, engine):
        assert engine.validate("x").to_dict() == {"valid": True, "errors": [], "warnings": []}


def test_concurrent_renders(engine):
    text = "${#each xs}${item}${/each}"

    def work(n):
        return engine.render(text, {"xs": list(range(n))}).output

    with ThreadPoolExecutor(max_workers=4) as pool:
        outputs = list(pool.map(work, range(20)))

    assert outputs == ["".join(str(i) for i in range(n)) for n in range(20)]
    assert engine.cache_statistics().entries == 1
