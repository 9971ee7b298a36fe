"""
Provider contract for third-party identity providers.

This module defines the abstract base class that every identity provider must
implement, together with the stateless utilities shared by OAuth 2.0 providers:
state handling, OAuth error parsing, token endpoint calls through the injected
HTTP transport, and provider configuration validation.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Mapping, Tuple
import logging
import secrets
import time
from urllib.parse import urlparse

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.oauth2.rfc6749 import OAuth2Token
from requests.exceptions import RequestException, ConnectionError, Timeout

from ..client import context_for_client, http_client_with_fallback
from ..exceptions import (
    ProviderConfigurationError,
    OAuthFlowError,
    RefreshNotSupportedError,
)
from ..session import Session
from ..user import User


class Provider(ABC):
    """
    Abstract base class for identity providers.

    A provider holds configuration only. Everything specific to one in-flight
    handshake is kept on the Session it returns, so a single provider instance
    can serve concurrent handshakes for different end users.
    """

    def __init__(self, name: str, config: Dict[str, Any], http_client: Optional[requests.Session] = None):
        """
        Initialize the provider.

        Args:
            name: Provider name (e.g., 'google', 'github'), used as the registry key
            config: Provider configuration dictionary
            http_client: Optional requests session used for all outbound calls

        Raises:
            ProviderConfigurationError: If configuration is invalid
        """
        self._name = name
        self._debug = False
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{name}")

        self._validate_config()

        self.client_id = config['client_id']
        self.client_secret = config['client_secret']
        self.callback_url = config.get('callback_url', '')
        self.scopes = list(config.get('scopes', []))
        self.authorize_url = config.get('authorize_url')
        self.token_url = config.get('token_url')
        self.userinfo_url = config.get('userinfo_url')
        self.display_name = config.get('display_name', name.title())
        self.timeout = config.get('timeout', 30)
        self.http_client = http_client

        self.logger.info(f"Initialized {self.display_name} provider")

    @property
    def name(self) -> str:
        """Registry key of this provider."""
        return self._name

    def set_name(self, name: str) -> None:
        """
        Rebind the name this provider reports.

        Registries index providers by the name they had when registered, so
        the provider must be passed to ``use`` again after renaming.
        """
        self._log_debug(f"Renaming provider {self._name} -> {name}")
        self._name = name
        self.logger = logging.getLogger(f"{__name__}.{name}")

    def debug(self, enabled: bool) -> None:
        """
        Toggle verbose diagnostic logging for this provider instance.

        Other instances sharing the same name, and the shared logger's level,
        are not affected.
        """
        self._debug = bool(enabled)

    @property
    def debug_enabled(self) -> bool:
        return self._debug

    def _log_debug(self, msg: str) -> None:
        # With debug on, the record is handed to the logger's handlers even
        # when the logger level filters DEBUG out.
        if not self._debug:
            self.logger.debug(msg)
            return

        fn, lno, func, sinfo = self.logger.findCaller(False, 2)
        record = self.logger.makeRecord(self.logger.name, logging.DEBUG, fn, lno, msg, (), None, func, None, sinfo)
        self.logger.handle(record)

    def _validate_config(self) -> None:
        """
        Validate provider configuration.

        Raises:
            ProviderConfigurationError: If required configuration is missing or invalid
        """
        required_fields = ['client_id', 'client_secret']
        missing_fields = [field for field in required_fields if not self.config.get(field)]

        if missing_fields:
            raise ProviderConfigurationError(
                f"Missing required configuration for {self._name} provider: {', '.join(missing_fields)}"
            )

        if not isinstance(self.config['client_id'], str):
            raise ProviderConfigurationError(f"client_id must be a string for {self._name} provider")

        if not isinstance(self.config['client_secret'], str):
            raise ProviderConfigurationError(f"client_secret must be a string for {self._name} provider")

        scopes = self.config.get('scopes')
        if scopes is not None and not isinstance(scopes, list):
            raise ProviderConfigurationError(f"scopes must be a list for {self._name} provider")

        timeout = self.config.get('timeout')
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ProviderConfigurationError(f"timeout must be a positive number for {self._name} provider")

        url_fields = ['authorize_url', 'token_url', 'userinfo_url', 'callback_url']
        for field in url_fields:
            url = self.config.get(field)
            if url and not self._is_valid_url(url):
                raise ProviderConfigurationError(f"Invalid {field} for {self._name} provider: {url}")

    def _is_valid_url(self, url: str) -> bool:
        try:
            result = urlparse(url)
            return all([result.scheme, result.netloc])
        except (AttributeError, TypeError, ValueError):
            return False

    def generate_state(self) -> str:
        """
        Generate a secure state parameter for CSRF protection.

        Returns:
            Cryptographically secure state parameter
        """
        return secrets.token_urlsafe(32)

    def validate_state(self, received_state: Optional[str], stored_state: Optional[str]) -> bool:
        """
        Validate OAuth state parameter to prevent CSRF attacks.

        Args:
            received_state: State parameter received from OAuth callback
            stored_state: State parameter recorded when the handshake began

        Returns:
            True if state is valid, False otherwise
        """
        if not received_state or not stored_state:
            self.logger.error(f"Missing state parameter - received: {bool(received_state)}, stored: {bool(stored_state)}")
            return False

        if not secrets.compare_digest(received_state, stored_state):
            self.logger.error(f"State mismatch - received: {received_state[:10]}..., expected: {stored_state[:10]}...")
            return False

        return True

    def parse_oauth_error(self, error: str, error_description: str = None) -> Tuple[str, str]:
        """
        Parse and standardize OAuth error responses.

        Args:
            error: OAuth error code
            error_description: Optional error description

        Returns:
            Tuple of (error_code, user_friendly_message)
        """
        error_messages = {
            'access_denied': 'You cancelled the authorization. Please try again if you want to connect your account.',
            'invalid_request': 'Invalid authorization request. Please try again.',
            'unauthorized_client': 'Application not authorized. Please contact support.',
            'unsupported_response_type': 'Configuration error. Please contact support.',
            'invalid_scope': 'Invalid permissions requested. Please contact support.',
            'server_error': f'{self.display_name} server error. Please try again later.',
            'temporarily_unavailable': f'{self.display_name} service is temporarily unavailable. Please try again later.'
        }

        user_message = error_messages.get(error, error_description or 'OAuth authorization failed')

        self.logger.warning(f"OAuth error for {self._name}: {error} - {error_description}")

        return error, user_message

    def validate_token_response(self, token_data: Mapping[str, Any]) -> bool:
        """
        Validate OAuth token response.

        Args:
            token_data: Token response from OAuth provider

        Returns:
            True if token response is valid, False otherwise
        """
        if not token_data:
            self.logger.error(f"Empty token response from {self._name}")
            return False

        if not token_data.get('access_token'):
            self.logger.error(f"Missing access_token in response from {self._name}")
            return False

        expires_in = token_data.get('expires_in')
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
                if expires_in <= 0:
                    self.logger.warning(f"Invalid expires_in value from {self._name}: {expires_in}")
                    return False
            except (ValueError, TypeError):
                self.logger.warning(f"Non-numeric expires_in value from {self._name}: {expires_in}")
                return False

        return True

    def _oauth2_session(self, **kwargs):
        return context_for_client(self.http_client).open_oauth2_session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=' '.join(self.scopes) or None,
            redirect_uri=self.callback_url or None,
            token_endpoint_auth_method='client_secret_post',
            **kwargs
        )

    def build_authorization_url(self, state: str, **kwargs) -> str:
        """
        Build the consent screen URL for a new handshake.

        Args:
            state: Anti-forgery token; a fresh one is generated when empty
            **kwargs: Additional provider-specific query parameters

        Returns:
            Authorization URL including client_id, redirect_uri, scope and state
        """
        with self._oauth2_session() as oauth_session:
            auth_url, _ = oauth_session.create_authorization_url(
                self.authorize_url,
                state=state or self.generate_state(),
                **kwargs
            )
        self._log_debug(f"Generated {self.display_name} authorization URL with scopes: {' '.join(self.scopes)}")
        return auth_url

    def exchange_code_for_tokens(self, code: str) -> OAuth2Token:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from OAuth callback

        Returns:
            Token with access_token and, where granted, refresh_token and expires_at

        Raises:
            OAuthFlowError: If token exchange fails
        """
        try:
            self._log_debug(f"Exchanging authorization code for {self.display_name} tokens")
            with self._oauth2_session() as oauth_session:
                token = oauth_session.fetch_token(
                    self.token_url,
                    code=code,
                    grant_type='authorization_code',
                    timeout=self.timeout
                )
        except ConnectionError as e:
            self.logger.error(f"Network error during {self._name} token exchange: {e}", exc_info=True)
            raise OAuthFlowError("Network connection failed. Please check your internet connection.")
        except Timeout as e:
            self.logger.error(f"Timeout during {self._name} token exchange: {e}", exc_info=True)
            raise OAuthFlowError("Request timed out. Please try again.")
        except RequestException as e:
            self.logger.error(f"Network error during {self._name} token exchange: {e}", exc_info=True)
            raise OAuthFlowError(f"Network request failed: {e}")
        except AuthlibBaseError as e:
            self.logger.error(f"{self.display_name} token exchange failed: {e}")
            raise OAuthFlowError(f"Token exchange failed: {e}")

        if not self.validate_token_response(token):
            raise OAuthFlowError(f"Invalid token response from {self.display_name}")

        token = OAuth2Token(dict(token))
        self.logger.info(f"Successfully exchanged code for {self.display_name} tokens - expires_in: {token.get('expires_in')}")
        return token

    def _refresh_with_token_endpoint(self, refresh_token: str) -> OAuth2Token:
        if not refresh_token:
            raise OAuthFlowError(f"A refresh token is required to refresh {self.display_name} credentials")

        try:
            self._log_debug(f"Refreshing {self.display_name} access token")
            with self._oauth2_session() as oauth_session:
                token = oauth_session.refresh_token(
                    self.token_url,
                    refresh_token=refresh_token,
                    timeout=self.timeout
                )
        except RequestException as e:
            self.logger.error(f"Network error during {self._name} token refresh: {e}", exc_info=True)
            raise OAuthFlowError(f"Token refresh network error: {e}")
        except AuthlibBaseError as e:
            self.logger.error(f"{self.display_name} token refresh failed: {e}")
            raise OAuthFlowError(f"Token refresh failed: {e}")

        if not token or not token.get('access_token'):
            raise OAuthFlowError(f"Invalid refresh token response from {self.display_name}")

        token = OAuth2Token(dict(token))
        if not token.get('refresh_token'):
            # Keep original refresh token
            token['refresh_token'] = refresh_token

        self.logger.info(f"Successfully refreshed {self.display_name} access token - expires_in: {token.get('expires_in')}")
        return token

    def _unsupported_refresh(self) -> RefreshNotSupportedError:
        self.logger.warning(f"Token refresh requested from {self._name}, which does not support it")
        return RefreshNotSupportedError(f"Refresh token is not provided by {self.display_name}")

    def _require_access_token(self, session: Session, session_class: type) -> None:
        """
        Check that a session can be used to fetch the user.

        Raises:
            OAuthFlowError: If the session is of another provider type, or has
                no access token, or its access token has expired
        """
        if not isinstance(session, session_class):
            raise OAuthFlowError(
                f"{self._name} cannot fetch user information with a {type(session).__name__}"
            )

        if not session.access_token:
            raise OAuthFlowError(f"{self._name} cannot get user information without accessToken")

        expires_at = getattr(session, 'expires_at', None)
        if expires_at and expires_at <= time.time():
            raise OAuthFlowError(f"{self._name} access token has expired", 'token_expired')

    def _get_json(self, url: str, access_token: str, headers: Optional[Dict[str, str]] = None,
                  expected: type = dict) -> Any:
        """
        GET a JSON resource with a bearer token through the injected HTTP client.

        Args:
            url: Resource URL
            access_token: Bearer token for the Authorization header
            headers: Extra request headers
            expected: JSON type the response body must decode to

        Raises:
            OAuthFlowError: If the request fails, the response is not 200, or the
                body is not JSON of the expected type
        """
        request_headers = {
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json'
        }
        request_headers.update(headers or {})

        try:
            self._log_debug(f"Requesting {url}")
            response = http_client_with_fallback(self.http_client).get(
                url,
                headers=request_headers,
                timeout=self.timeout
            )
        except RequestException as e:
            self.logger.error(f"Network error during {self._name} request to {url}: {e}", exc_info=True)
            raise OAuthFlowError(f"User info retrieval network error: {e}")

        if response.status_code != 200:
            error_msg = f'HTTP {response.status_code}'
            self.logger.error(f"{self.display_name} request to {url} failed: {error_msg}")
            raise OAuthFlowError(f"{self._name} responded with a {response.status_code} trying to fetch user information")

        try:
            data = response.json()
        except ValueError as e:
            raise OAuthFlowError(f"{self._name} returned invalid JSON: {e}")

        if not isinstance(data, expected):
            self.logger.error(f"{self.display_name} request to {url} returned {type(data).__name__}, expected {expected.__name__}")
            raise OAuthFlowError(f"{self._name} returned an unexpected response trying to fetch user information")

        return data

    @staticmethod
    def _expiry_datetime(expires_at: Optional[int]) -> Optional[datetime]:
        if not expires_at:
            return None
        return datetime.fromtimestamp(expires_at, tz=timezone.utc)

    @abstractmethod
    def begin_auth(self, state: str) -> Session:
        """
        Start a new handshake.

        Args:
            state: Opaque anti-forgery token supplied by the caller

        Returns:
            Session whose ``get_auth_url()`` is the redirect target

        Raises:
            AuthURLNotSetError: If the provider has no authorization endpoint
        """

    @abstractmethod
    def unmarshal_session(self, data: str) -> Session:
        """
        Rebuild a session of this provider's type from its serialized form.

        Raises:
            SessionUnmarshalError: If ``data`` is malformed
        """

    @abstractmethod
    def fetch_user(self, session: Session) -> User:
        """
        Fetch the authenticated user with an authorized session.

        Raises:
            OAuthFlowError: If the credential is absent or expired, or the
                identity endpoint fails
        """

    @abstractmethod
    def refresh_token(self, refresh_token: str) -> OAuth2Token:
        """
        Exchange a refresh token for a new access token.

        Raises:
            RefreshNotSupportedError: If ``refresh_token_available()`` is False
            OAuthFlowError: If the refresh is rejected or the endpoint is unreachable
        """

    @abstractmethod
    def refresh_token_available(self) -> bool:
        """Whether this provider issues refresh tokens."""

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get provider information for API responses and UI display.

        Returns:
            Provider information dictionary
        """
        provider_metadata = self._get_provider_metadata()

        return {
            'name': self._name,
            'display_name': self.display_name,
            'type': 'oauth2',
            'scopes': self.scopes,
            'supports_refresh': self.refresh_token_available(),
            'callback_url': self.callback_url,
            'metadata': {
                'documentation_url': provider_metadata.get('documentation_url'),
                'website_url': provider_metadata.get('website_url'),
                'supported_features': self._get_supported_features(),
                'token_endpoint': self.token_url,
                'authorization_endpoint': self.authorize_url,
                'userinfo_endpoint': self.userinfo_url
            }
        }

    def _get_provider_metadata(self) -> Dict[str, Any]:
        """
        Get provider-specific metadata. Override in subclasses for custom metadata.
        """
        return {
            'documentation_url': None,
            'website_url': None
        }

    def _get_supported_features(self) -> List[str]:
        features = ['oauth2_authorization_code', 'user_info']

        if self.refresh_token_available():
            features.append('token_refresh')

        return features

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name='{self._name}', display_name='{self.display_name}')"

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(name='{self._name}', "
                f"display_name='{self.display_name}', scopes={self.scopes})")
