# config/__init__.py
"""
Application configuration package
"""

from .base import Config, DevelopmentConfig, ProductionConfig, TestingConfig

__all__ = [
    "Config",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
]
