"""
Provider registry for identity providers.

This module implements the provider manager that maps provider names to
provider instances, builds providers from configuration, and exposes a
process-wide shared registry through module-level convenience functions.
"""

from typing import Dict, Any, List, Optional, Type
import importlib
import logging
import threading

import requests

from ..exceptions import (
    ProviderConfigurationError,
    ProviderManagerError,
    ProviderNotFoundError,
)
from .base_provider import Provider


class ProviderManager:
    """
    Thread-safe registry of identity providers keyed by name.

    The manager holds references to providers; callers keep their own. At
    most one provider is registered per name and the last registration wins.
    Providers are keyed by the name they report at registration time, so a
    provider renamed with ``set_name`` must be registered again.
    """

    def __init__(self):
        self.providers: Dict[str, Provider] = {}
        self.provider_classes: Dict[str, Type[Provider]] = {}
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

        self._register_builtin_providers()

    def _register_builtin_providers(self) -> None:
        """Register built-in provider classes."""
        from .google_provider import GoogleProvider
        from .microsoft_provider import MicrosoftProvider
        from .github_provider import GitHubProvider

        self.provider_classes['google'] = GoogleProvider
        self.provider_classes['microsoft'] = MicrosoftProvider
        self.provider_classes['github'] = GitHubProvider

    def use(self, *providers: Provider) -> None:
        """
        Add providers to the registry.

        Can be called multiple times. If the same name is passed more than
        once, the last provider is kept.
        """
        with self._lock:
            for provider in providers:
                if provider is None:
                    raise ProviderManagerError("Cannot register None as a provider")
                previous = self.providers.get(provider.name)
                self.providers[provider.name] = provider
                if previous is not None and previous is not provider:
                    self.logger.info(f"Replaced provider: {provider.name} ({provider.__class__.__name__})")
                else:
                    self.logger.info(f"Registered provider: {provider.name} ({provider.__class__.__name__})")

    def get(self, name: str) -> Provider:
        """
        Get a registered provider by name.

        Raises:
            ProviderNotFoundError: If no provider is registered under ``name``
        """
        with self._lock:
            provider = self.providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def clear(self) -> None:
        """Remove every registered provider."""
        with self._lock:
            self.providers = {}
        self.logger.debug("Cleared all registered providers")

    def get_all(self) -> Dict[str, Provider]:
        """
        Get all registered providers.

        Returns:
            Snapshot of provider name to provider instance
        """
        with self._lock:
            return self.providers.copy()

    def unregister(self, name: str) -> bool:
        """
        Unregister a provider.

        Returns:
            True if provider was unregistered, False if not found
        """
        with self._lock:
            if name not in self.providers:
                return False
            del self.providers[name]
        self.logger.info(f"Unregistered provider: {name}")
        return True

    def register_provider_class(self, name: str, provider_class: Type[Provider]) -> None:
        """
        Register a provider class for instantiation from configuration.

        Raises:
            ProviderManagerError: If provider class is invalid
        """
        if not isinstance(provider_class, type) or not issubclass(provider_class, Provider):
            raise ProviderManagerError(f"Provider class {provider_class!r} must inherit from Provider")

        with self._lock:
            self.provider_classes[name] = provider_class
        self.logger.info(f"Registered provider class: {name} -> {provider_class.__name__}")

    def _resolve_provider_class(self, provider_type: str, config: Dict[str, Any]) -> Type[Provider]:
        with self._lock:
            provider_class = self.provider_classes.get(provider_type)
        if provider_class is not None:
            return provider_class

        provider_class_name = config.get('provider_class', provider_type.title() + 'Provider')
        try:
            module = importlib.import_module(f".{provider_type}_provider", package=__package__)
            provider_class = getattr(module, provider_class_name)
        except (ImportError, AttributeError) as e:
            raise ProviderManagerError(f"Failed to import provider class {provider_class_name}: {e}")

        self.register_provider_class(provider_type, provider_class)
        return provider_class

    def register_provider(self, name: str, config: Dict[str, Any],
                          http_client: Optional[requests.Session] = None) -> Provider:
        """
        Instantiate a provider from configuration and register it.

        The ``type`` configuration key selects the provider class and defaults
        to ``name``, so one provider type can be registered under several names.

        Returns:
            The registered provider instance

        Raises:
            ProviderManagerError: If the class cannot be found or the configuration is invalid
        """
        provider_type = config.get('type', name)
        provider_class = self._resolve_provider_class(provider_type, config)

        try:
            provider = provider_class({**config, 'name': name}, http_client=http_client)
        except ProviderConfigurationError as e:
            self.logger.error(f"Provider configuration error for {name}: {e}")
            raise ProviderManagerError(f"Failed to register provider {name}: {e}")

        self.use(provider)
        return provider

    def register_providers_from_config(self, config, http_client: Optional[requests.Session] = None) -> List[str]:
        """
        Register all enabled providers from configuration.

        A provider whose configuration is broken is logged and skipped so the
        remaining providers are still registered.

        Args:
            config: Config instance
            http_client: Optional requests session shared by the created providers

        Returns:
            Names of the registered providers
        """
        settings = config.get_provider_settings()
        registered = []

        for provider_name in config.get_enabled_providers():
            provider_config = dict(config.get_provider_config(provider_name))
            provider_config.setdefault('callback_url', config.get_callback_url(provider_name))
            provider_config.setdefault('timeout', config.get_http_timeout())
            try:
                provider = self.register_provider(provider_name, provider_config, http_client=http_client)
            except ProviderManagerError as e:
                self.logger.error(f"Failed to register provider {provider_name} from config: {e}")
                continue

            if settings.get('debug') or config.is_debug():
                provider.debug(True)
            registered.append(provider_name)

        self.logger.info(f"Registered {len(registered)} providers from configuration")
        return registered

    def get_provider_info(self) -> List[Dict[str, Any]]:
        """
        Get information about all registered providers.
        """
        return [provider.get_provider_info() for provider in self.get_all().values()]

    def get_provider_stats(self) -> Dict[str, Any]:
        """
        Get statistics about registered providers.
        """
        providers = self.get_all()
        with self._lock:
            provider_classes = list(self.provider_classes.keys())
        return {
            'total_providers': len(providers),
            'provider_names': list(providers.keys()),
            'provider_classes': provider_classes,
            'refresh_capable': [name for name, p in providers.items() if p.refresh_token_available()]
        }


_providers = ProviderManager()


def use_providers(*providers: Provider) -> None:
    """
    Add providers to the shared registry.

    Can be called multiple times. If the same name is passed more than once,
    the last provider is kept.
    """
    _providers.use(*providers)


def get_providers() -> Dict[str, Provider]:
    """Return a snapshot of all providers in the shared registry."""
    return _providers.get_all()


def get_provider(name: str) -> Provider:
    """
    Return a provider from the shared registry.

    Raises:
        ProviderNotFoundError: If the provider has not been registered
    """
    return _providers.get(name)


def clear_providers() -> None:
    """Remove all providers from the shared registry. Mostly useful in tests."""
    _providers.clear()


def get_provider_manager() -> ProviderManager:
    """Return the shared registry instance."""
    return _providers
