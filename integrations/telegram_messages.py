"""
Centralized Telegram message templates.

Usage:
    from integrations.telegram_messages import get_message

    message = get_message("failsafe_triggered",
        job="inventory-sync",
        reason="6 of 100 records (6.0%) exceed the 5% limit",
    )
"""

MESSAGES = {
    "failsafe_triggered": """🚨 *FAILSAFE TRIGGERED*

Job: `{job}`
Reason: {reason}

No pending changes were applied. Confirm, abort or clear from the dashboard.""",

    "failsafe_confirmed": """✅ *Failsafe confirmed*

Job: `{job}`
Applying {count} pending changes.""",

    "failsafe_aborted": """🛑 *Failsafe aborted*

Job: `{job}`
{count} pending changes discarded.""",

    "job_failed": """❌ *Sync job failed*

Job: `{job}`
Error: {error}""",

    "system_paused": "⏸️ *Sync paused*\n\nRunning jobs will stop at the next item.",

    "system_resumed": "▶️ *Sync resumed*",
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message template and format with kwargs.

    Args:
        key: Message template key
        **kwargs: Format arguments for the template

    Returns:
        Formatted message string; the key itself when no template exists
    """
    template = MESSAGES.get(key, key)
    try:
        return template.format(**kwargs)
    except KeyError:
        # Return template as-is if formatting fails
        return template
