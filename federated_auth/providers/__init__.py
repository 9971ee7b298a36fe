"""
Identity provider system for federated authentication.

This package provides a pluggable architecture for identity providers,
allowing new authentication services to be integrated through a
standardized interface and looked up by name from a shared registry.
"""

from .base_provider import Provider
from .provider_manager import (
    ProviderManager,
    use_providers,
    get_providers,
    get_provider,
    clear_providers,
    get_provider_manager,
)
from .google_provider import GoogleProvider, GoogleSession
from .microsoft_provider import MicrosoftProvider, MicrosoftSession
from .github_provider import GitHubProvider, GitHubSession

__all__ = [
    'Provider',
    'ProviderManager',
    'use_providers',
    'get_providers',
    'get_provider',
    'clear_providers',
    'get_provider_manager',
    'GoogleProvider',
    'GoogleSession',
    'MicrosoftProvider',
    'MicrosoftSession',
    'GitHubProvider',
    'GitHubSession',
]
