"""
Normalized user record produced by a completed handshake.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class User:
    """
    Identity of an end user as reported by an identity provider.

    Fields a provider does not supply are left empty. ``raw_data`` keeps the
    provider's unmodified profile response.
    """
    provider: str
    user_id: str = ''
    email: str = ''
    name: str = ''
    first_name: str = ''
    last_name: str = ''
    nick_name: str = ''
    description: str = ''
    avatar_url: str = ''
    location: str = ''
    access_token: str = ''
    access_token_secret: str = ''
    refresh_token: str = ''
    expires_at: Optional[datetime] = None
    id_token: str = ''
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert user to dictionary, without credentials."""
        data = asdict(self)
        for secret in ('access_token', 'access_token_secret', 'refresh_token', 'id_token'):
            data.pop(secret)
        data['expires_at'] = self.expires_at.isoformat() if self.expires_at else None
        return data
