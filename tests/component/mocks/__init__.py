"""
Component Test Mocks

Shared mock implementations for component testing.
Service-specific mocks live in tests/component/{service}/conftest.py.
"""

from .nats_mock import MockEventBus

__all__ = [
    'MockEventBus',
]
