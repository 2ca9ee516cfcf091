"""
Share links that carry a recipient handle and its salt.

    tip:  <base>/?username=bob&salt=<64 hex>
    game: <base>/?gameUsername=bob&gameSalt=<64 hex>

Anyone holding the link can withdraw the funds. Send it privately.
"""

from __future__ import annotations

from typing import Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

from .errors import ValidationError
from .salt import salt_from_hex, salt_to_hex
from .stealth import normalize_username

TIP_PARAMS = ("username", "salt")
GAME_PARAMS = ("gameUsername", "gameSalt")


def build_share_link(base_url: str, username: str, salt: bytes, game: bool = False) -> str:
    user_key, salt_key = GAME_PARAMS if game else TIP_PARAMS
    query = urlencode({user_key: normalize_username(username), salt_key: salt_to_hex(salt)})
    return f"{base_url.rstrip('/')}/?{query}"


def parse_share_link(url: str) -> Tuple[str, bytes]:
    params = parse_qs(urlsplit(url).query)
    for user_key, salt_key in (TIP_PARAMS, GAME_PARAMS):
        if user_key in params and salt_key in params:
            username = normalize_username(params[user_key][0])
            if not username:
                raise ValidationError("Link carries an empty username.")
            return username, salt_from_hex(params[salt_key][0])
    raise ValidationError("Link has no username/salt parameters.")
