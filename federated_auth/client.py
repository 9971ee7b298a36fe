"""
HTTP transport injection helpers.

Every outbound call a provider makes (token exchange, token refresh, user
profile fetch) goes through the helpers in this module so that callers can
supply their own ``requests.Session`` for proxying, mocking or instrumentation.
"""

from contextlib import contextmanager
from typing import Iterator, Optional
import logging

import requests
from authlib.integrations.requests_client import OAuth2Session


logger = logging.getLogger(__name__)

# Shared transport used when a provider is not given one
DEFAULT_HTTP_CLIENT = requests.Session()


def http_client_with_fallback(http_client: Optional[requests.Session]) -> requests.Session:
    """
    Return the supplied HTTP client, or the shared default client if none was given.

    Args:
        http_client: Caller-supplied requests session or None

    Returns:
        The HTTP client to use for outbound calls
    """
    if http_client is not None:
        return http_client
    return DEFAULT_HTTP_CLIENT


class ClientContext:
    """
    Carries a caller-supplied HTTP transport into OAuth token endpoint calls.

    A context without a client builds plain authlib sessions with the
    library's default transport behaviour.
    """

    def __init__(self, http_client: Optional[requests.Session] = None):
        self.http_client = http_client

    def oauth2_session(self, **kwargs) -> OAuth2Session:
        """
        Build an authlib OAuth2Session bound to this context's transport.

        Args:
            **kwargs: Arguments forwarded to OAuth2Session (client_id, scope, ...)

        Returns:
            OAuth2Session using the carried client's adapters, proxies, TLS settings,
            default headers, cookies, auth and hooks
        """
        oauth_session = OAuth2Session(**kwargs)

        if self.http_client is None:
            return oauth_session

        for prefix, adapter in self.http_client.adapters.items():
            oauth_session.mount(prefix, adapter)
        oauth_session.proxies.update(self.http_client.proxies)
        oauth_session.verify = self.http_client.verify
        oauth_session.cert = self.http_client.cert
        oauth_session.trust_env = self.http_client.trust_env
        oauth_session.headers.update(self.http_client.headers)
        oauth_session.cookies.update(self.http_client.cookies)
        if self.http_client.auth is not None:
            oauth_session.auth = self.http_client.auth
        for event, hooks in self.http_client.hooks.items():
            oauth_session.hooks.setdefault(event, []).extend(hooks)

        logger.debug(f"Bound OAuth2 session to caller-supplied transport {self.http_client!r}")
        return oauth_session

    @contextmanager
    def open_oauth2_session(self, **kwargs) -> Iterator[OAuth2Session]:
        """
        Provide an OAuth2Session for the duration of one token endpoint call.

        Sessions built on the default transport own their connection pool and
        are closed on exit. Sessions sharing a caller-supplied client's adapters
        are left open.
        """
        oauth_session = self.oauth2_session(**kwargs)
        try:
            yield oauth_session
        finally:
            if self.http_client is None:
                oauth_session.close()

    def __repr__(self) -> str:
        return f"ClientContext(http_client={self.http_client!r})"


def context_for_client(http_client: Optional[requests.Session] = None) -> ClientContext:
    """
    Provide a context for use with OAuth2 token endpoint calls.

    Args:
        http_client: Caller-supplied requests session, or None for the default transport

    Returns:
        ClientContext carrying the transport
    """
    return ClientContext(http_client)
