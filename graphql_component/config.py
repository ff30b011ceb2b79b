"""Runtime settings for component composition."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Context key the per-request data source bindings are written under
    DATA_SOURCES_KEY: str = "data_sources"
    MEMOIZE_ROOT_RESOLVERS: bool = True
    # Sibling import conflicts: last|first|error
    SIBLING_CONFLICT_POLICY: Literal["last", "first", "error"] = "last"
    MOCK_LIST_LENGTH: int = 2

    model_config = {
        "env_prefix": "GRAPHQL_COMPONENT_",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    global _settings_cache
    _settings_cache = None
