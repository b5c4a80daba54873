"""
Notifications — persists engine events to the notification feed, and posts
reprocessing summaries to Slack.

publish_events() runs inside the caller's transaction and lets errors
propagate. Slack failure never blocks reprocessing.
"""
import logging
from typing import Iterable, List

import requests

from leadsignal.config import SLACK_WEBHOOK_URL
from leadsignal.engine.base import NotificationEvent
from leadsignal.models.notification import Notification

logger = logging.getLogger('services.notifications')


def publish_events(session, events: Iterable[NotificationEvent]) -> List[Notification]:
    """Append one unread Notification row per event. Does not commit."""
    rows = []
    for event in events:
        row = Notification(
            type=event.type,
            title=event.title,
            message=event.message,
            metadata_json=dict(event.metadata),
            read=False,
        )
        session.add(row)
        rows.append(row)
    if rows:
        logger.debug("Queued %d notifications", len(rows))
    return rows


def notify_reprocess_complete(run):
    """Post reprocessing completion summary to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        title = 'Reprocessamento cancelado' if run.status == 'cancelled' else 'Reprocessamento concluído'
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": title},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Leads:* {run.processed or 0}/{run.total or 0}"},
                    {"type": "mrkdwn", "text": f"*Novas análises:* {run.updated or 0}"},
                    {"type": "mrkdwn", "text": f"*Qualificados:* {run.transitioned or 0}"},
                    {"type": "mrkdwn", "text": f"*Falhas:* {run.failed or 0}"},
                ]
            },
        ]

        if run.summary:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"_{run.summary}_"}
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Reprocess run %s completion notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send notification for reprocess run %s", run.id[:8], exc_info=True)


def notify_reprocess_failed(run):
    """Post reprocessing failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        last_error = ''
        if run.errors:
            last_err = run.errors[-1]
            last_error = last_err.get('message', '') if isinstance(last_err, dict) else str(last_err)

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "Reprocessamento FALHOU"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Processados até a falha:* {run.processed or 0}"},
                    {"type": "mrkdwn", "text": f"*Novas análises:* {run.updated or 0}"},
                ]
            },
        ]

        if last_error:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Erro:* ```{last_error[:500]}```"}
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Reprocess run %s failure notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send failure notification for reprocess run %s", run.id[:8], exc_info=True)
