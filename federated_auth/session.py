"""
Per-handshake session state and its string serialization.

A session is created by ``Provider.begin_auth``, stored by the caller (cookie,
hidden form field, server-side store) while the end user is redirected to the
identity provider, and rebuilt with ``Provider.unmarshal_session`` when the
redirect returns.

Serialized form: canonical JSON ``{"data": {...}, "provider": "<tag>"}``
encoded as unpadded URL-safe base64, which is safe to place in cookies and
form fields without further escaping.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, fields
from typing import Any, Dict, Mapping, Union, get_args, get_origin, get_type_hints
from urllib.parse import parse_qs, urlparse
import base64
import binascii
import json

from .exceptions import AuthURLNotSetError, OAuthFlowError, SessionUnmarshalError


def _value_matches(value: Any, hint: Any) -> bool:
    if get_origin(hint) is Union:
        return any(_value_matches(value, arg) for arg in get_args(hint))
    if hint is type(None):
        return value is None
    if hint is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, hint)


class Session(ABC):
    """
    Base class for provider session types.

    Subclasses are dataclasses that set ``provider_tag`` and declare an
    ``auth_url`` field. Everything needed to resume the handshake lives on the
    session, never on the provider.
    """

    provider_tag: str = ''

    auth_url: str

    def get_auth_url(self) -> str:
        """
        Return the URL the end user must be redirected to.

        Raises:
            AuthURLNotSetError: If the session carries no authorization URL
        """
        if not self.auth_url:
            raise AuthURLNotSetError()
        return self.auth_url

    def get_state(self) -> str:
        """Return the anti-forgery state embedded in the authorization URL."""
        query = parse_qs(urlparse(self.auth_url or '').query)
        return query.get('state', [''])[0]

    def _read_callback(self, provider, params: Mapping[str, str]) -> str:
        """
        Validate callback query parameters and return the authorization code.

        Raises:
            OAuthFlowError: On an OAuth error response, state mismatch or missing code
        """
        error = params.get('error')
        if error:
            error_code, user_message = provider.parse_oauth_error(error, params.get('error_description'))
            raise OAuthFlowError(user_message, error_code)

        received_state = params.get('state')
        stored_state = self.get_state()
        if (received_state or stored_state) and not provider.validate_state(received_state, stored_state):
            raise OAuthFlowError('state token mismatch', 'state_mismatch')

        code = params.get('code')
        if not code:
            raise OAuthFlowError('authorization code missing from callback', 'missing_code')

        return code

    @abstractmethod
    def authorize(self, provider, params: Mapping[str, str]) -> str:
        """
        Complete the handshake with the callback parameters.

        Exchanges the authorization code for a credential through ``provider``
        and records it on the session.

        Args:
            provider: The provider that began this session
            params: Query parameters received on the callback URL

        Returns:
            The granted access token
        """

    def to_dict(self) -> Dict[str, Any]:
        """Convert session to dictionary."""
        return asdict(self)

    def marshal(self) -> str:
        """Serialize the session to a compact, text-safe string."""
        payload = json.dumps(
            {'provider': self.provider_tag, 'data': self.to_dict()},
            separators=(',', ':'),
            sort_keys=True
        )
        return base64.urlsafe_b64encode(payload.encode('utf-8')).decode('ascii').rstrip('=')

    @classmethod
    def unmarshal(cls, serialized: str) -> 'Session':
        """
        Rebuild a session from its serialized form.

        Args:
            serialized: String produced by ``marshal``

        Returns:
            Session equal to the one that was marshaled

        Raises:
            SessionUnmarshalError: If the input is malformed, belongs to another
                provider, or does not carry exactly this session's fields
        """
        if not isinstance(serialized, str) or not serialized:
            raise SessionUnmarshalError(f"cannot unmarshal {cls.__name__} from empty or non-string value")

        if '+' in serialized or '/' in serialized:
            raise SessionUnmarshalError(f"malformed {cls.__name__}: not URL-safe base64")

        try:
            padded = serialized + '=' * (-len(serialized) % 4)
            raw = base64.b64decode(padded.encode('ascii'), altchars=b'-_', validate=True)
            payload = json.loads(raw.decode('utf-8'))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise SessionUnmarshalError(f"malformed {cls.__name__}: {e}")

        if not isinstance(payload, dict) or set(payload) != {'provider', 'data'}:
            raise SessionUnmarshalError(f"malformed {cls.__name__}: unexpected envelope")

        if payload['provider'] != cls.provider_tag:
            raise SessionUnmarshalError(
                f"session belongs to provider '{payload['provider']}', expected '{cls.provider_tag}'"
            )

        data = payload['data']
        if not isinstance(data, dict):
            raise SessionUnmarshalError(f"malformed {cls.__name__}: data is not an object")

        hints = get_type_hints(cls)
        expected = {f.name for f in fields(cls)}
        if set(data) != expected:
            missing = sorted(expected - set(data))
            unknown = sorted(set(data) - expected)
            raise SessionUnmarshalError(
                f"malformed {cls.__name__}: missing fields {missing}, unknown fields {unknown}"
            )

        for name, value in data.items():
            if not _value_matches(value, hints[name]):
                raise SessionUnmarshalError(f"malformed {cls.__name__}: invalid value for '{name}'")

        return cls(**data)

    def __str__(self) -> str:
        return self.marshal()
