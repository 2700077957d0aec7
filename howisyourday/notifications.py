import logging

from howisyourday.errors import IntegrationError

logger = logging.getLogger(__name__)


def broadcast_push(gateway, tokens, title, body, data=None):
    """Fan a notification out to every valid device token.

    Chunks are sent one after another; a failed chunk is logged and skipped
    so the remaining chunks still go out. The result reports how many tokens
    were attempted and how many tickets came back, not per-device delivery.
    """
    if not tokens:
        return {'message': 'No push tokens registered', 'sent': 0}

    messages = [
        {
            'to': token,
            'sound': 'default',
            'title': title,
            'body': body,
            'data': data or {},
        }
        for token in tokens
        if gateway.is_push_token(token)
    ]

    if not messages:
        return {'message': 'No valid push tokens', 'sent': 0}

    tickets = []
    for index, chunk in enumerate(gateway.chunk_messages(messages)):
        try:
            tickets.extend(gateway.send_chunk(chunk))
        except IntegrationError as e:
            logger.error(f"Push notification chunk {index} ({len(chunk)} messages) failed: {e}")

    logger.info(f"Push broadcast '{title}': {len(messages)} messages, {len(tickets)} tickets")
    return {
        'message': 'Notifications sent',
        'sent': len(messages),
        'tickets': len(tickets),
    }
