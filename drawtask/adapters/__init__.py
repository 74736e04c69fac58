"""
Provider Adapter Module

Provides a unified interface for communicating with different image
generation vendors. Each adapter handles the specific request/response
format for its provider; new vendors are added with ``register_adapter``.
"""

from typing import Dict, Optional, Type

from .base import (
    ProviderAdapter,
    GenerationRequest,
    ProviderResult,
    ChatCompletionResult,
    ImageGenerationResult,
    normalize_result,
)
from .volcengine import VolcengineAdapter
from .jimeng import JimengAdapter
from ..errors import UnsupportedProviderError

ADAPTERS: Dict[str, Type[ProviderAdapter]] = {}


def register_adapter(adapter_class: Type[ProviderAdapter]) -> Type[ProviderAdapter]:
    """Register an adapter class under its ``name``. Usable as a decorator."""
    ADAPTERS[adapter_class.name] = adapter_class
    return adapter_class


register_adapter(VolcengineAdapter)
register_adapter(JimengAdapter)


def is_supported_provider(provider: Optional[str]) -> bool:
    return bool(provider) and provider in ADAPTERS


def get_adapter(provider: Optional[str], defaults: Optional[Dict] = None,
                timeout: float = 600) -> ProviderAdapter:
    """
    Instantiate the adapter for a provider discriminator.

    Raises:
        UnsupportedProviderError: if no adapter is registered for it
    """
    adapter_class = ADAPTERS.get(provider or "")
    if adapter_class is None:
        raise UnsupportedProviderError(provider or "")
    return adapter_class(defaults=defaults, timeout=timeout)


__all__ = [
    'ProviderAdapter',
    'GenerationRequest',
    'ProviderResult',
    'ChatCompletionResult',
    'ImageGenerationResult',
    'VolcengineAdapter',
    'JimengAdapter',
    'ADAPTERS',
    'register_adapter',
    'is_supported_provider',
    'get_adapter',
    'normalize_result',
]
