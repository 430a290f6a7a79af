"""WhatsApp JID helpers.

A JID looks like ``user[_agent][:device]@server``; user chats live on
``s.whatsapp.net`` while groups, newsletters and status broadcasts use their
own servers.
"""

import re

USER_SERVER = "s.whatsapp.net"

# Chats that never produce a webhook record
NON_USER_SUFFIXES = ("@g.us", "@newsletter", "@status", "@broadcast")

_NON_DIGITS = re.compile(r"\D")


def decode_user(jid: str | None) -> str | None:
    """Return the user portion of *jid*, or None if it has no server part."""
    if not jid or "@" not in jid:
        return None
    user_with_device = jid.split("@", 1)[0]
    user = user_with_device.split(":", 1)[0]
    return user.split("_", 1)[0]


def phone_to_jid(phone: str) -> str:
    """Recipient JID from a free-form phone, e.g. "+55 (11) 99999-9999" → "5511999999999@s.whatsapp.net"."""
    return f"{digits_only(phone)}@{USER_SERVER}"


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def is_non_user_chat(jid: str | None) -> bool:
    """True for groups, newsletters and status broadcasts."""
    if not jid:
        return False
    return jid.endswith(NON_USER_SUFFIXES)
