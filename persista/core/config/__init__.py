"""Configuration for persista."""

from .settings import MongoConfig, PostgresConfig, Settings, StoreConfig, settings

__all__ = ["MongoConfig", "PostgresConfig", "Settings", "StoreConfig", "settings"]
