"""
Federated authentication through pluggable third-party identity providers.

Register providers once at startup and look them up by name for each login:

    from federated_auth import use_providers, get_provider
    from federated_auth.providers import GoogleProvider

    use_providers(GoogleProvider({'client_id': ..., 'client_secret': ...,
                                  'callback_url': 'https://example.com/auth/google/callback'}))

    provider = get_provider('google')
    session = provider.begin_auth(state)
    # redirect to session.get_auth_url(), store session.marshal()
"""

from .client import DEFAULT_HTTP_CLIENT, ClientContext, context_for_client, http_client_with_fallback
from .exceptions import (
    NO_AUTH_URL_ERROR_MESSAGE,
    FederatedAuthError,
    ConfigurationError,
    ProviderConfigurationError,
    AuthURLNotSetError,
    OAuthFlowError,
    RefreshNotSupportedError,
    SessionUnmarshalError,
    ProviderManagerError,
    ProviderNotFoundError,
)
from .session import Session
from .user import User
from .providers import (
    Provider,
    ProviderManager,
    use_providers,
    get_providers,
    get_provider,
    clear_providers,
    get_provider_manager,
)

__version__ = "1.0.0"

__all__ = [
    'DEFAULT_HTTP_CLIENT',
    'ClientContext',
    'context_for_client',
    'http_client_with_fallback',
    'NO_AUTH_URL_ERROR_MESSAGE',
    'FederatedAuthError',
    'ConfigurationError',
    'ProviderConfigurationError',
    'AuthURLNotSetError',
    'OAuthFlowError',
    'RefreshNotSupportedError',
    'SessionUnmarshalError',
    'ProviderManagerError',
    'ProviderNotFoundError',
    'Session',
    'User',
    'Provider',
    'ProviderManager',
    'use_providers',
    'get_providers',
    'get_provider',
    'clear_providers',
    'get_provider_manager',
]
