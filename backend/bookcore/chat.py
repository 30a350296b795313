import base64
import binascii
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from bookcore.constants import MODERATOR_ROLES

UNDECRYPTABLE = "Message could not be decrypted"


# Messages are only base64-obfuscated at rest; this is not encryption.
def encode_message(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_message(payload: str) -> str:
    try:
        return base64.b64decode(payload, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError):
        return UNDECRYPTABLE


def is_moderator(role: Optional[str]) -> bool:
    return role in MODERATOR_ROLES


def can_delete_message(actor_id: str, actor_role: Optional[str], author_id: str) -> bool:
    return actor_id == author_id or is_moderator(actor_role)


def needs_moderation_log(actor_id: str, actor_role: Optional[str], author_id: str) -> bool:
    return actor_id != author_id and is_moderator(actor_role)


def _parse_ts(value) -> datetime:
    # Zone-less timestamps are UTC.
    return pd.to_datetime(value, utc=True).to_pydatetime()


def is_muted(mutes: Iterable[dict], now: datetime) -> bool:
    now = _parse_ts(now)
    for mute in mutes:
        expires = mute.get("expires_at")
        if expires and _parse_ts(expires) > now:
            return True
    return False
