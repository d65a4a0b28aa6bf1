"""Chat history compression used before messages are handed to the client."""

CONTEXT_HEAD_COUNT = 2
RECENT_SHARE = 0.6
LONG_MESSAGE_CHARS = 200


def is_important_message(message):
    text = str((message or {}).get('text') or '')
    return (
        '?' in text
        or 'important' in text
        or len(text) > LONG_MESSAGE_CHARS
        or (message or {}).get('role') == 'user'
    )


def compress_messages(messages, target_count):
    """Reduce ``messages`` to about ``target_count`` entries.

    Keeps the opening messages for context, the most recent share for
    recency, and fills whatever budget is left with the latest "important"
    messages from the middle. Relative order is preserved. The two opening
    messages and the recent share are always kept, so targets below 3 can
    come back longer than asked.
    """
    messages = list(messages or [])
    target_count = int(target_count)
    if len(messages) <= target_count:
        return messages

    head = messages[:CONTEXT_HEAD_COUNT]
    recent_count = int(target_count * RECENT_SHARE)
    if recent_count > 0:
        recent = messages[-recent_count:]
        middle = messages[CONTEXT_HEAD_COUNT:-recent_count]
    else:
        recent = []
        middle = messages[CONTEXT_HEAD_COUNT:]

    important = [message for message in middle if is_important_message(message)]
    remaining_slots = target_count - len(head) - len(recent)
    selected = important[-remaining_slots:] if remaining_slots > 0 else []

    return head + selected + recent
