"""
Provider Contract Tests

Shared checks that every identity provider must pass. Mix this class into a
``unittest.TestCase`` for the provider under test and set, in ``setUp``:

- ``self.provider``: a provider instance with a callback_url configured
- ``self.provider_class``: the provider class
- ``self.session_class``: the provider's session class
- ``self.authorized_session``: a session populated with credentials
- ``self.expects_refresh``: whether the provider supports token refresh
"""

import logging
from unittest.mock import patch, MagicMock
from urllib.parse import urlparse, parse_qs

from federated_auth.exceptions import (
    NO_AUTH_URL_ERROR_MESSAGE,
    AuthURLNotSetError,
    OAuthFlowError,
    RefreshNotSupportedError,
    SessionUnmarshalError,
)
from federated_auth.session import Session


class RecordingHandler(logging.Handler):
    """Collects log records emitted during a test."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class ProviderContractMixin:
    """Contract checks common to every provider variant."""

    valid_config = {
        'client_id': 'test_client_id_123',
        'client_secret': 'test_client_secret_456',
        'callback_url': 'http://localhost:5000/auth/test/callback'
    }

    # Handshake start

    def test_begin_auth_returns_session_with_redirect_url(self):
        """Test begin_auth returns a session carrying the consent screen URL."""
        session = self.provider.begin_auth('state_token_abc')

        self.assertIsInstance(session, self.session_class)
        auth_url = session.get_auth_url()
        query = parse_qs(urlparse(auth_url).query)

        self.assertTrue(auth_url.startswith(self.provider.authorize_url))
        self.assertEqual(query['client_id'], ['test_client_id_123'])
        self.assertEqual(query['state'], ['state_token_abc'])
        self.assertEqual(query['response_type'], ['code'])
        self.assertEqual(query['redirect_uri'], ['http://localhost:5000/auth/test/callback'])
        self.assertEqual(session.get_state(), 'state_token_abc')

    def test_begin_auth_without_state_generates_one(self):
        """Test begin_auth generates a state when the caller supplies none."""
        session = self.provider.begin_auth('')

        self.assertTrue(session.get_state())

    def test_begin_auth_without_auth_url_fails_with_sentinel(self):
        """Test begin_auth fails with the fixed message when no authorization endpoint is configured."""
        provider = self.provider_class({**self.valid_config, 'authorize_url': ''})

        with self.assertRaises(AuthURLNotSetError) as context:
            provider.begin_auth('state')

        self.assertEqual(str(context.exception), NO_AUTH_URL_ERROR_MESSAGE)
        self.assertEqual(str(context.exception), "an AuthURL has not been set")

    def test_session_without_auth_url_fails_with_sentinel(self):
        """Test get_auth_url on an empty session fails with the fixed message."""
        with self.assertRaises(AuthURLNotSetError) as context:
            self.session_class().get_auth_url()

        self.assertEqual(str(context.exception), NO_AUTH_URL_ERROR_MESSAGE)

    def test_begin_auth_does_not_store_state_on_provider(self):
        """Test concurrent handshakes do not share state through the provider instance."""
        first = self.provider.begin_auth('state_one')
        second = self.provider.begin_auth('state_two')

        self.assertEqual(first.get_state(), 'state_one')
        self.assertEqual(second.get_state(), 'state_two')

    # Session serialization

    def test_fresh_session_round_trip(self):
        """Test a freshly begun session survives marshal/unmarshal."""
        session = self.provider.begin_auth('state_token')

        restored = self.provider.unmarshal_session(session.marshal())

        self.assertEqual(restored, session)

    def test_authorized_session_round_trip(self):
        """Test an authorized session survives marshal/unmarshal."""
        serialized = self.authorized_session.marshal()

        restored = self.provider.unmarshal_session(serialized)

        self.assertIsInstance(restored, self.session_class)
        self.assertEqual(restored, self.authorized_session)
        self.assertEqual(str(self.authorized_session), serialized)

    def test_marshaled_session_is_cookie_safe(self):
        """Test the serialized form only uses URL-safe characters."""
        serialized = self.authorized_session.marshal()

        allowed = set('ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_')
        self.assertTrue(set(serialized) <= allowed)

    def test_unmarshal_malformed_session(self):
        """Test malformed input is rejected rather than partially decoded."""
        for bad in ['', 'not base64!', '{"auth_url": ""}', 'eyJ', None, 42]:
            with self.subTest(bad=bad):
                with self.assertRaises(SessionUnmarshalError):
                    self.provider.unmarshal_session(bad)

    def test_unmarshal_truncated_session(self):
        """Test a truncated serialized session is rejected."""
        serialized = self.authorized_session.marshal()

        with self.assertRaises(SessionUnmarshalError):
            self.provider.unmarshal_session(serialized[:len(serialized) // 2])

    # User retrieval

    def test_fetch_user_without_access_token(self):
        """Test fetch_user refuses a session that has not been authorized."""
        session = self.provider.begin_auth('state_token')

        with self.assertRaises(OAuthFlowError) as context:
            self.provider.fetch_user(session)

        self.assertIn('without accessToken', str(context.exception))

    def test_fetch_user_with_foreign_session(self):
        """Test fetch_user rejects a session of another type."""
        foreign = MagicMock(spec=Session)
        foreign.access_token = 'token'

        with self.assertRaises(OAuthFlowError):
            self.provider.fetch_user(foreign)

    def test_fetch_user_upstream_error(self):
        """Test fetch_user surfaces a non-200 identity endpoint response as OAuthFlowError."""
        response = MagicMock(status_code=401)
        with patch.object(self.provider.http_client, 'get', return_value=response):
            with self.assertRaises(OAuthFlowError) as context:
                self.provider.fetch_user(self.authorized_session)

        self.assertIn('401', str(context.exception))

    def test_fetch_user_non_object_profile(self):
        """Test a profile response that is not a JSON object surfaces as OAuthFlowError."""
        response = MagicMock(status_code=200)
        response.json.return_value = ['not', 'a', 'profile']
        with patch.object(self.provider.http_client, 'get', return_value=response):
            with self.assertRaises(OAuthFlowError):
                self.provider.fetch_user(self.authorized_session)

    # Refresh capability

    def test_refresh_token_capability(self):
        """Test refresh capability flag and refresh policy."""
        self.assertEqual(self.provider.refresh_token_available(), self.expects_refresh)

        if not self.expects_refresh:
            with self.assertRaises(RefreshNotSupportedError):
                self.provider.refresh_token('some_refresh_token')

    # Naming and debug

    def test_set_name(self):
        """Test set_name rebinds the reported name."""
        self.provider.set_name(self.provider.name + '_alias')

        self.assertTrue(self.provider.name.endswith('_alias'))

    def test_debug_toggle(self):
        """Test debug toggles verbose logging without affecting the handshake."""
        self.provider.debug(True)
        self.assertTrue(self.provider.debug_enabled)

        session = self.provider.begin_auth('state_token')
        self.assertTrue(session.get_auth_url())

        self.provider.debug(False)
        self.assertFalse(self.provider.debug_enabled)

    def test_debug_is_per_instance(self):
        """Test two instances with the same name keep separate debug state."""
        twin = self.provider_class(self.valid_config)
        self.assertEqual(twin.name, self.provider.name)

        logger = logging.getLogger(self.provider.logger.name)
        handler = RecordingHandler()
        previous_level = logger.level
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            self.provider.debug(True)
            self.provider.begin_auth('state_a')
            twin.begin_auth('state_b')
            self.provider.debug(False)
            self.provider.begin_auth('state_c')
        finally:
            logger.removeHandler(handler)
            logger.setLevel(previous_level)

        url_records = [
            record for record in handler.records
            if record.levelno == logging.DEBUG and 'authorization URL' in record.getMessage()
        ]
        self.assertEqual(len(url_records), 1)
        self.assertFalse(twin.debug_enabled)
        self.assertEqual(logger.level, previous_level)
