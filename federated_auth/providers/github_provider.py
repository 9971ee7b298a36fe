"""
GitHub OAuth provider implementation.

GitHub OAuth apps issue long-lived access tokens and no refresh tokens, so
this provider reports no refresh capability.
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
class GitHubSession(Session):
    """Handshake state for GitHub."""
    provider_tag = 'github'

    auth_url: str = ''
    access_token: str = ''

    def authorize(self, provider, params: Mapping[str, str]) -> str:
        code = self._read_callback(provider, params)
        token = provider.exchange_code_for_tokens(code)

        self.access_token = token['access_token']
        return self.access_token


class GitHubProvider(Provider):
    """
    GitHub OAuth provider implementation.

    When the profile has no public email, the primary verified address is
    looked up on the emails endpoint (requires the ``user:email`` scope).
    """

    def __init__(self, config: Dict[str, Any], http_client: Optional[requests.Session] = None):
        default_config = {
            'authorize_url': 'https://github.com/login/oauth/authorize',
            'token_url': 'https://github.com/login/oauth/access_token',
            'userinfo_url': 'https://api.github.com/user',
            'emails_url': 'https://api.github.com/user/emails',
            'display_name': 'GitHub',
            'scopes': ['read:user', 'user:email']
        }

        merged_config = {**default_config, **config}

        super().__init__(config.get('name', 'github'), merged_config, http_client)

        self.emails_url = merged_config['emails_url']

    def begin_auth(self, state: str) -> GitHubSession:
        if not self.authorize_url:
            raise AuthURLNotSetError()

        return GitHubSession(auth_url=self.build_authorization_url(state))

    def unmarshal_session(self, data: str) -> GitHubSession:
        return GitHubSession.unmarshal(data)

    def fetch_user(self, session: Session) -> User:
        self._require_access_token(session, GitHubSession)

        headers = {'Accept': 'application/vnd.github+json'}
        user_info = self._get_json(self.userinfo_url, session.access_token, headers)

        email = user_info.get('email') or ''
        if not email and 'user:email' in self.scopes:
            email = self._primary_email(session.access_token, headers)

        user = User(
            provider=self.name,
            user_id=str(user_info.get('id', '')),
            email=email,
            name=user_info.get('name') or '',
            nick_name=user_info.get('login') or '',
            description=user_info.get('bio') or '',
            avatar_url=user_info.get('avatar_url') or '',
            location=user_info.get('location') or '',
            access_token=session.access_token,
            raw_data=user_info
        )

        self.logger.info(f"Successfully retrieved GitHub user info for user: {user.nick_name or 'unknown'}")
        return user

    def _primary_email(self, access_token: str, headers: Dict[str, str]) -> str:
        emails = self._get_json(self.emails_url, access_token, headers, expected=list)

        for entry in emails:
            if not isinstance(entry, dict):
                continue
            if entry.get('primary') and entry.get('verified'):
                return entry.get('email') or ''
        return ''

    def refresh_token(self, refresh_token: str) -> OAuth2Token:
        raise self._unsupported_refresh()

    def refresh_token_available(self) -> bool:
        return False

    def _get_provider_metadata(self) -> Dict[str, Any]:
        return {
            'documentation_url': 'https://docs.github.com/en/apps/oauth-apps',
            'website_url': 'https://github.com'
        }
