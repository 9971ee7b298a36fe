"""
Exception classes for federated authentication.
"""

NO_AUTH_URL_ERROR_MESSAGE = "an AuthURL has not been set"


class FederatedAuthError(Exception):
    """Base exception for all federated authentication errors."""
    
    error_code = 'federated_auth_error'
    
    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ConfigurationError(FederatedAuthError):
    """Raised when configuration is invalid or missing."""
    error_code = 'configuration_error'


class ProviderConfigurationError(FederatedAuthError):
    """Raised when provider configuration is invalid."""
    error_code = 'configuration_error'


class AuthURLNotSetError(ProviderConfigurationError):
    """Raised when a handshake is started without an authorization endpoint."""
    error_code = 'auth_url_not_set'
    
    def __init__(self):
        super().__init__(NO_AUTH_URL_ERROR_MESSAGE)


class OAuthFlowError(FederatedAuthError):
    """Raised when OAuth flow encounters an error."""
    error_code = 'oauth_flow_error'


class RefreshNotSupportedError(FederatedAuthError):
    """Raised when a token refresh is requested from a provider without refresh support."""
    error_code = 'refresh_not_supported'


class SessionUnmarshalError(FederatedAuthError):
    """Raised when a serialized session cannot be decoded."""
    error_code = 'malformed_session'


class ProviderManagerError(FederatedAuthError):
    """Raised when provider manager encounters an error."""
    error_code = 'provider_manager_error'


class ProviderNotFoundError(ProviderManagerError):
    """Raised when no provider is registered under the requested name."""
    error_code = 'provider_not_found'
    
    def __init__(self, name: str):
        super().__init__(f"no provider for {name} exists")
        self.name = name
