"""
Configuration package.

``provider_registry`` is imported explicitly by callers; it depends on the
provider clients, which themselves depend on this package.
"""

from tutor_llm.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
