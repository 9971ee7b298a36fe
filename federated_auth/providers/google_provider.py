"""
Google OAuth 2.0 provider implementation.

This module implements the Google provider using the Provider interface,
handling Google-specific authorization parameters and the Google userinfo API.
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
class GoogleSession(Session):
    """Handshake state for Google."""
    provider_tag = 'google'

    auth_url: str = ''
    access_token: str = ''
    refresh_token: str = ''
    expires_at: Optional[int] = None
    id_token: str = ''

    def authorize(self, provider, params: Mapping[str, str]) -> str:
        code = self._read_callback(provider, params)
        token = provider.exchange_code_for_tokens(code)

        self.access_token = token['access_token']
        self.refresh_token = token.get('refresh_token') or ''
        self.expires_at = int(token['expires_at']) if token.get('expires_at') else None
        self.id_token = token.get('id_token') or ''
        return self.access_token


class GoogleProvider(Provider):
    """
    Google OAuth 2.0 provider implementation.

    Requests offline access by default so that Google issues a refresh token.
    """

    def __init__(self, config: Dict[str, Any], http_client: Optional[requests.Session] = None):
        """
        Initialize Google provider.

        Args:
            config: Google provider configuration dictionary
            http_client: Optional requests session for outbound calls

        Raises:
            ProviderConfigurationError: If configuration is invalid
        """
        default_config = {
            'authorize_url': 'https://accounts.google.com/o/oauth2/auth',
            'token_url': 'https://oauth2.googleapis.com/token',
            'userinfo_url': 'https://www.googleapis.com/oauth2/v2/userinfo',
            'display_name': 'Google Account',
            'scopes': ['openid', 'email', 'profile']
        }

        merged_config = {**default_config, **config}

        super().__init__(config.get('name', 'google'), merged_config, http_client)

        self.access_type = config.get('access_type', 'offline')
        self.prompt = config.get('prompt', 'consent')
        self.hosted_domain = config.get('hosted_domain')
        self.include_granted_scopes = config.get('include_granted_scopes', True)

    def begin_auth(self, state: str) -> GoogleSession:
        if not self.authorize_url:
            raise AuthURLNotSetError()

        params = {
            'access_type': self.access_type,
            'prompt': self.prompt
        }
        if self.hosted_domain:
            params['hd'] = self.hosted_domain
        if self.include_granted_scopes:
            params['include_granted_scopes'] = 'true'

        return GoogleSession(auth_url=self.build_authorization_url(state, **params))

    def unmarshal_session(self, data: str) -> GoogleSession:
        return GoogleSession.unmarshal(data)

    def fetch_user(self, session: Session) -> User:
        """
        Retrieve the Google user for an authorized session.

        Raises:
            OAuthFlowError: If the session has no valid access token or the
                userinfo request fails
        """
        self._require_access_token(session, GoogleSession)

        user_info = self._get_json(self.userinfo_url, session.access_token)

        user = User(
            provider=self.name,
            user_id=str(user_info.get('id', '')),
            email=user_info.get('email', ''),
            name=user_info.get('name', ''),
            first_name=user_info.get('given_name', ''),
            last_name=user_info.get('family_name', ''),
            nick_name=user_info.get('name', ''),
            avatar_url=user_info.get('picture', ''),
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=self._expiry_datetime(session.expires_at),
            id_token=session.id_token,
            raw_data=user_info
        )

        self.logger.info(f"Successfully retrieved Google user info for user: {user.email or 'unknown'}")
        return user

    def refresh_token(self, refresh_token: str) -> OAuth2Token:
        return self._refresh_with_token_endpoint(refresh_token)

    def refresh_token_available(self) -> bool:
        return True

    def _get_provider_metadata(self) -> Dict[str, Any]:
        return {
            'documentation_url': 'https://developers.google.com/identity/protocols/oauth2',
            'website_url': 'https://accounts.google.com',
            'token_lifetime': {
                'access_token': '1 hour',
                'refresh_token': 'indefinite (until revoked)'
            }
        }
