"""Configuration package utilities."""

__all__ = ["ConfigController", "SessionConfig"]


def __getattr__(name: str):
    if name == "ConfigController":
        from config.controller import ConfigController

        return ConfigController
    if name == "SessionConfig":
        from config.session import SessionConfig

        return SessionConfig
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
