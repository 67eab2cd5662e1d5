import pytest

from ptpl.cache import TemplateCache, sha1_text


@pytest.fixture
def compiled(engine):
    return engine.compile("${x}", use_cache=False)


class TestTemplateCache:

    def test_get_put(self, compiled):
        cache = TemplateCache()
        assert cache.get("k") is None
        cache.put("k", compiled)

        assert cache.get("k") is compiled
        assert "k" in cache
        assert len(cache) == 1
        snap = cache.snapshot()
        assert (snap.hits, snap.misses, snap.entries) == (1, 1, 1)

    def test_entry_of_other_revision_is_dropped(self, compiled):
        cache = TemplateCache()
        cache.put("k", compiled)

        assert cache.get("k", revision=compiled.procedure.revision) is compiled
        assert cache.get("k", revision=compiled.procedure.revision + 1) is None
        assert "k" not in cache
        snap = cache.snapshot()
        assert (snap.hits, snap.misses) == (1, 1)

    def test_lru_eviction(self, compiled):
        cache = TemplateCache(max_entries=2)
        cache.put("a", compiled)
        cache.put("b", compiled)
        cache.get("a")
        cache.put("c", compiled)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_disabled_cache_stores_nothing(self, compiled):
        cache = TemplateCache(enabled=False)
        cache.put("k", compiled)
        assert cache.get("k") is None
        assert cache.snapshot().misses == 0

    @pytest.mark.parametrize("value", ["0", "false", "no", "OFF"])
    def test_env_disables_cache(self, monkeypatch, value):
        monkeypatch.setenv("PTPL_CACHE", value)
        assert TemplateCache(enabled=True).enabled is False

    def test_env_enables_cache(self, monkeypatch):
        monkeypatch.setenv("PTPL_CACHE", "1")
        assert TemplateCache(enabled=False).enabled is True

    def test_clear(self, compiled):
        cache = TemplateCache()
        cache.put("a", compiled)
        assert cache.clear() == 1
        assert cache.clear() == 0

    def test_hit_rate_without_lookups(self):
        assert TemplateCache().snapshot().hit_rate == 0.0


def test_sha1_text():
    assert sha1_text("") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
    assert sha1_text("привет") != sha1_text("привет ")
