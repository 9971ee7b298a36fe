"""
Microsoft identity platform (OAuth 2.0) provider implementation.

This module implements the Microsoft provider using the Provider interface,
handling tenant-specific endpoints and Microsoft Graph user profile retrieval.
"""

from dataclasses import dataclass
from typing import Dict, Any, Mapping, Optional

import requests
from authlib.oauth2.rfc6749 import OAuth2Token

from ..exceptions import AuthURLNotSetError
from ..session import Session
from ..user import User
from .base_provider import Provider


@dataclass
class MicrosoftSession(Session):
    """Handshake state for Microsoft."""
    provider_tag = 'microsoft'

    auth_url: str = ''
    access_token: str = ''
    refresh_token: str = ''
    expires_at: Optional[int] = None

    def authorize(self, provider, params: Mapping[str, str]) -> str:
        code = self._read_callback(provider, params)
        token = provider.exchange_code_for_tokens(code)

        self.access_token = token['access_token']
        self.refresh_token = token.get('refresh_token') or ''
        self.expires_at = int(token['expires_at']) if token.get('expires_at') else None
        return self.access_token


class MicrosoftProvider(Provider):
    """
    Microsoft OAuth 2.0 provider implementation.

    The ``tenant`` setting selects the directory endpoints (``common``,
    ``organizations``, ``consumers`` or a tenant id).
    """

    def __init__(self, config: Dict[str, Any], http_client: Optional[requests.Session] = None):
        """
        Initialize Microsoft provider.

        Args:
            config: Microsoft provider configuration dictionary
            http_client: Optional requests session for outbound calls

        Raises:
            ProviderConfigurationError: If configuration is invalid
        """
        tenant = config.get('tenant', 'common')

        default_config = {
            'authorize_url': f'https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize',
            'token_url': f'https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token',
            'userinfo_url': 'https://graph.microsoft.com/v1.0/me',
            'display_name': 'Microsoft Account',
            'scopes': ['openid', 'offline_access', 'User.Read']
        }

        merged_config = {**default_config, **config}

        super().__init__(config.get('name', 'microsoft'), merged_config, http_client)

        self.tenant = tenant
        self.response_mode = config.get('response_mode', 'query')
        self.prompt = config.get('prompt', 'select_account')

    def begin_auth(self, state: str) -> MicrosoftSession:
        if not self.authorize_url:
            raise AuthURLNotSetError()

        auth_url = self.build_authorization_url(
            state,
            response_mode=self.response_mode,
            prompt=self.prompt
        )
        return MicrosoftSession(auth_url=auth_url)

    def unmarshal_session(self, data: str) -> MicrosoftSession:
        return MicrosoftSession.unmarshal(data)

    def fetch_user(self, session: Session) -> User:
        """
        Retrieve the Microsoft Graph profile for an authorized session.

        Raises:
            OAuthFlowError: If the session has no valid access token or the
                Graph request fails
        """
        self._require_access_token(session, MicrosoftSession)

        user_info = self._get_json(self.userinfo_url, session.access_token)

        user = User(
            provider=self.name,
            user_id=str(user_info.get('id', '')),
            email=user_info.get('mail') or user_info.get('userPrincipalName') or '',
            name=user_info.get('displayName') or '',
            first_name=user_info.get('givenName') or '',
            last_name=user_info.get('surname') or '',
            nick_name=user_info.get('displayName') or '',
            description=user_info.get('jobTitle') or '',
            location=user_info.get('officeLocation') or '',
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=self._expiry_datetime(session.expires_at),
            raw_data=user_info
        )

        self.logger.info(f"Successfully retrieved Microsoft user info for user: {user.email or 'unknown'}")
        return user

    def refresh_token(self, refresh_token: str) -> OAuth2Token:
        return self._refresh_with_token_endpoint(refresh_token)

    def refresh_token_available(self) -> bool:
        return True

    def _get_provider_metadata(self) -> Dict[str, Any]:
        return {
            'documentation_url': 'https://docs.microsoft.com/en-us/azure/active-directory/develop/',
            'website_url': 'https://account.microsoft.com',
            'tenant': self.tenant
        }
