from gateway.models.events import InboundEvent
from gateway.utils.jid import is_non_user_chat

IGNORED_TYPES = frozenset({
    "senderKeyDistributionMessage",
    "status@broadcast",
    "protocolMessage",
    "reactionMessage",
    "ephemeralMessage",
})


def ignore_reason(event: InboundEvent) -> str | None:
    """Return why *event* must not reach the webhook, or None to keep it."""
    if not event.has_content:
        return "no_content"
    if event.from_me:
        return "from_me"
    if event.message_type in IGNORED_TYPES:
        return "ignored_type"
    if is_non_user_chat(event.sender):
        return "non_user_chat"
    return None
