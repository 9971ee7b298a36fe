"""
Configuration module for federated authentication.

Settings come from two places: the environment (optionally seeded from a
``.env`` file) for deployment-wide values such as the public base URL, and a
JSON providers file for per-provider credentials and options. String values
of the form ``env:NAME`` in the providers file are replaced with the value of
environment variable ``NAME``.

Example providers file::

    {
        "providers": {
            "google": {
                "client_id": "env:GOOGLE_CLIENT_ID",
                "client_secret": "env:GOOGLE_CLIENT_SECRET",
                "enabled": true
            }
        },
        "settings": {"debug": false}
    }
"""

import os
import json
import threading
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv

from .exceptions import ConfigurationError

ENV_PREFIX = 'env:'

DEFAULT_BASE_URL = 'http://127.0.0.1:5000'
DEFAULT_HTTP_TIMEOUT = 30.0


def _env_reference(value: Any) -> Optional[str]:
    """Return the variable name of an ``env:`` reference, or None for literal values."""
    if isinstance(value, str) and value.startswith(ENV_PREFIX):
        return value[len(ENV_PREFIX):]
    return None


def _is_enabled(entry: Dict[str, Any]) -> bool:
    return bool(entry.get('enabled', True))


class Config:
    """Configuration for identity providers and the callback endpoints they use."""

    def __init__(self, providers_config_path: Optional[str] = None):
        """
        Load environment settings and the providers file.

        Args:
            providers_config_path: Path to the providers configuration file; defaults
                to FEDERATED_AUTH_PROVIDERS_FILE or providers.json

        Raises:
            ConfigurationError: If a setting is invalid, the providers file cannot
                be read, or an enabled provider references an unset variable
        """
        load_dotenv()

        self.providers_config_path = (
            providers_config_path
            or os.getenv('FEDERATED_AUTH_PROVIDERS_FILE', 'providers.json')
        )

        self._base_url = os.getenv('FEDERATED_AUTH_BASE_URL', DEFAULT_BASE_URL)
        self._callback_url_override = os.getenv('FEDERATED_AUTH_CALLBACK_URL_OVERRIDE')
        self._debug = os.getenv('FEDERATED_AUTH_DEBUG', 'false').lower() in ('1', 'true', 'yes')
        self._http_timeout = self._read_http_timeout()

        self.reload_provider_configurations()

    @staticmethod
    def _read_http_timeout() -> float:
        raw = os.getenv('FEDERATED_AUTH_HTTP_TIMEOUT')
        if raw is None:
            return DEFAULT_HTTP_TIMEOUT

        try:
            timeout = float(raw)
        except ValueError:
            raise ConfigurationError(f"FEDERATED_AUTH_HTTP_TIMEOUT must be a number, got {raw!r}")

        if timeout <= 0:
            raise ConfigurationError("FEDERATED_AUTH_HTTP_TIMEOUT must be positive")
        return timeout

    def _read_providers_file(self) -> Dict[str, Any]:
        try:
            with open(self.providers_config_path, 'r') as f:
                document = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Provider configuration file not found: {self.providers_config_path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in provider configuration file: {e}")

        if not isinstance(document, dict):
            raise ConfigurationError(f"Provider configuration file must contain an object: {self.providers_config_path}")

        providers = document.get('providers', {})
        if not isinstance(providers, dict) or not all(isinstance(entry, dict) for entry in providers.values()):
            raise ConfigurationError(
                f"'providers' must map provider names to objects in {self.providers_config_path}"
            )

        return document

    def _resolve(self, provider: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        """
        Build a provider's configuration with ``env:`` references substituted.

        Unset variables resolve to None for disabled providers and raise for
        enabled ones.
        """
        resolved = {}
        missing = []

        for key, value in entry.items():
            var_name = _env_reference(value)
            if var_name is None:
                resolved[key] = value
                continue

            resolved[key] = os.getenv(var_name)
            if not resolved[key]:
                missing.append(var_name)

        if missing and _is_enabled(entry):
            raise ConfigurationError(
                f"Missing required environment variables for provider {provider}: {', '.join(missing)}. "
                f"Set them in the environment or in a .env file."
            )

        return resolved

    def get_provider_config(self, provider: str) -> Dict[str, Any]:
        """
        Get resolved configuration for a specific provider.

        Raises:
            ConfigurationError: If provider is not configured or disabled
        """
        if provider not in self._resolved:
            raise ConfigurationError(f"Unsupported provider: {provider}")

        if not self.is_provider_enabled(provider):
            raise ConfigurationError(f"Provider is disabled: {provider}")

        return self._resolved[provider]

    def get_callback_url(self, provider: str) -> str:
        """
        Get the callback URL for a provider.

        FEDERATED_AUTH_CALLBACK_URL_OVERRIDE, when set, replaces the base URL.
        """
        base_url = (self._callback_url_override or self._base_url).rstrip('/')
        return f"{base_url}/auth/{provider}/callback"

    def get_http_timeout(self) -> float:
        return self._http_timeout

    def is_debug(self) -> bool:
        return self._debug

    def get_enabled_providers(self) -> List[str]:
        """Names of enabled providers, in file order."""
        return [name for name, entry in self._providers.items() if _is_enabled(entry)]

    def is_provider_enabled(self, provider: str) -> bool:
        entry = self._providers.get(provider)
        return entry is not None and _is_enabled(entry)

    def enable_provider(self, provider: str) -> bool:
        """
        Enable a provider, resolving its configuration.

        Returns:
            True if provider was enabled, False if provider not found

        Raises:
            ConfigurationError: If the provider references an unset variable; the
                provider then stays disabled
        """
        entry = self._providers.get(provider)
        if entry is None:
            return False

        candidate = {**entry, 'enabled': True}
        self._resolved[provider] = self._resolve(provider, candidate)
        self._providers[provider] = candidate
        return True

    def disable_provider(self, provider: str) -> bool:
        """
        Disable a provider.

        Returns:
            True if provider was disabled, False if provider not found
        """
        entry = self._providers.get(provider)
        if entry is None:
            return False

        self._providers[provider] = {**entry, 'enabled': False}
        return True

    def get_provider_settings(self) -> Dict[str, Any]:
        """Global ``settings`` object of the providers file."""
        return dict(self._settings)

    def reload_provider_configurations(self) -> None:
        """
        Reload provider configurations from file.

        The current configuration is replaced only when the whole file loads.

        Raises:
            ConfigurationError: If configuration loading fails
        """
        document = self._read_providers_file()
        providers = document.get('providers', {})

        resolved = {name: self._resolve(name, entry) for name, entry in providers.items()}

        self._providers = {name: dict(entry) for name, entry in providers.items()}
        self._resolved = resolved
        self._settings = document.get('settings', {})


_config = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """
    Get the shared configuration instance, loading it on first use.

    Raises:
        ConfigurationError: If configuration loading fails
    """
    global _config
    with _config_lock:
        if _config is None:
            _config = Config()
        return _config
