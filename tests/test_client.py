"""
Unit tests for HTTP transport injection helpers.
"""

import json
import unittest
from unittest.mock import patch

import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from authlib.integrations.requests_client import OAuth2Session

from federated_auth import client
from federated_auth.client import (
    DEFAULT_HTTP_CLIENT,
    ClientContext,
    context_for_client,
    http_client_with_fallback,
)
from federated_auth.providers.google_provider import GoogleProvider


class TestHTTPClientWithFallBack(unittest.TestCase):
    """Test cases for http_client_with_fallback."""

    def test_none_returns_default_client(self):
        """Test the shared default client is returned when none is supplied."""
        self.assertIs(http_client_with_fallback(None), DEFAULT_HTTP_CLIENT)
        self.assertIs(http_client_with_fallback(None), client.DEFAULT_HTTP_CLIENT)

    def test_custom_client_returned_unchanged(self):
        """Test a supplied client is returned as is."""
        custom = requests.Session()

        self.assertIs(http_client_with_fallback(custom), custom)


class TestContextForClient(unittest.TestCase):
    """Test cases for context_for_client."""

    def test_context_without_client(self):
        """Test a context without a client uses authlib's default transport."""
        context = context_for_client(None)

        self.assertIsInstance(context, ClientContext)
        self.assertIsNone(context.http_client)

        oauth_session = context.oauth2_session(client_id='id', client_secret='secret')
        self.assertIsInstance(oauth_session, OAuth2Session)
        self.assertEqual(oauth_session.client_id, 'id')

    def test_context_carries_custom_transport(self):
        """Test the OAuth2 session uses the supplied client's transport settings."""
        adapter = HTTPAdapter(max_retries=0)
        custom = requests.Session()
        custom.mount('https://', adapter)
        custom.proxies = {'https': 'http://proxy.internal:3128'}
        custom.verify = '/etc/ssl/certs/internal-ca.pem'

        context = context_for_client(custom)
        oauth_session = context.oauth2_session(client_id='id', client_secret='secret')

        self.assertIs(context.http_client, custom)
        self.assertIs(oauth_session.get_adapter('https://oauth2.example.com/token'), adapter)
        self.assertEqual(oauth_session.proxies['https'], 'http://proxy.internal:3128')
        self.assertEqual(oauth_session.verify, '/etc/ssl/certs/internal-ca.pem')

    def test_context_does_not_modify_supplied_client(self):
        """Test building an OAuth2 session leaves the supplied client untouched."""
        custom = requests.Session()
        adapters_before = dict(custom.adapters)

        context_for_client(custom).oauth2_session(client_id='id')

        self.assertEqual(dict(custom.adapters), adapters_before)


class RecordingAdapter(BaseAdapter):
    """Transport adapter that answers every request with a fixed JSON body."""

    def __init__(self, payload):
        super().__init__()
        self.payload = payload
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        response = requests.Response()
        response.status_code = 200
        response.headers['Content-Type'] = 'application/json'
        response._content = json.dumps(self.payload).encode('utf-8')
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


class TestInjectedTransportOnTokenCalls(unittest.TestCase):
    """Test cases for the supplied client's settings on token endpoint calls."""

    def setUp(self):
        self.adapter = RecordingAdapter({
            'access_token': 'refreshed_access',
            'token_type': 'Bearer',
            'expires_in': 3600
        })
        self.fired = []

        self.custom = requests.Session()
        self.custom.mount('https://', self.adapter)
        self.custom.headers['X-Trace'] = 'abc'
        self.custom.hooks['response'].append(lambda response, **kwargs: self.fired.append(response.url))

    def test_refresh_uses_hooks_and_headers(self):
        """Test response hooks and default headers apply to token refresh."""
        provider = GoogleProvider(
            {'client_id': 'id', 'client_secret': 'secret'},
            http_client=self.custom
        )

        token = provider.refresh_token('rt')

        self.assertEqual(token['access_token'], 'refreshed_access')
        self.assertEqual(len(self.adapter.sent), 1)
        self.assertEqual(self.adapter.sent[0].headers.get('X-Trace'), 'abc')
        self.assertEqual(self.fired, ['https://oauth2.googleapis.com/token'])

    def test_session_carries_cookies_and_auth(self):
        """Test cookies and auth of the supplied client are carried over."""
        self.custom.cookies.set('affinity', 'node-7')
        self.custom.auth = ('proxy-user', 'proxy-pass')

        oauth_session = context_for_client(self.custom).oauth2_session(client_id='id')

        self.assertEqual(oauth_session.cookies.get('affinity'), 'node-7')
        self.assertEqual(oauth_session.auth, ('proxy-user', 'proxy-pass'))
        self.assertIn(self.custom.hooks['response'][0], oauth_session.hooks['response'])


class TestOpenOAuth2Session(unittest.TestCase):
    """Test cases for ClientContext.open_oauth2_session."""

    @patch('federated_auth.client.OAuth2Session')
    def test_default_transport_session_is_closed(self, mock_session_class):
        """Test a session built on the default transport is closed on exit."""
        with context_for_client(None).open_oauth2_session(client_id='id') as oauth_session:
            self.assertIs(oauth_session, mock_session_class.return_value)
            oauth_session.close.assert_not_called()

        mock_session_class.return_value.close.assert_called_once()

    @patch('federated_auth.client.OAuth2Session')
    def test_supplied_transport_session_is_left_open(self, mock_session_class):
        """Test a session sharing the supplied client's adapters is not closed."""
        with context_for_client(requests.Session()).open_oauth2_session(client_id='id'):
            pass

        mock_session_class.return_value.close.assert_not_called()

    @patch('federated_auth.client.OAuth2Session')
    def test_session_closed_when_call_fails(self, mock_session_class):
        """Test the default transport session is closed when the body raises."""
        with self.assertRaises(RuntimeError):
            with context_for_client(None).open_oauth2_session(client_id='id'):
                raise RuntimeError('token endpoint failed')

        mock_session_class.return_value.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
