from .template_cache import TemplateCache, CacheSnapshot, sha1_text

__all__ = ["TemplateCache", "CacheSnapshot", "sha1_text"]
