"""Admin notifications (Telegram)."""

import logging
from typing import Optional

import httpx

from app.config import settings
from app.domain.models import ExecutionSummary

logger = logging.getLogger(__name__)


def format_run_summary(summary: ExecutionSummary) -> str:
    lines = [
        f"[INFO] Installment run {summary.target_date}",
        "",
        f"Plans due: {summary.total_due}",
        f"Executed: {summary.executed}",
        f"Failed: {summary.failed}",
        f"Skipped: {summary.skipped}",
    ]
    if summary.errors:
        lines.append(f"Errors (rolled back, retried next run): {summary.errors}")
    lines += [
        "",
        f"Invested: ₹{summary.total_invested:,.2f}",
        f"Withdrawn: ₹{summary.total_withdrawn:,.2f}",
        f"Transferred: ₹{summary.total_transferred:,.2f}",
        f"Duration: {summary.duration_ms} ms",
    ]
    return "\n".join(lines)


async def send_telegram_message(text: str, client: Optional[httpx.AsyncClient] = None) -> bool:
    """Send a Telegram message if enabled and bot token + chat ID are configured."""
    token = settings.TELEGRAM_BOT_TOKEN
    chat_id = settings.TELEGRAM_CHAT_ID

    if not settings.TELEGRAM_ENABLED or not token or not chat_id:
        logger.info("Telegram alert skipped (disabled or missing TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID)")
        return False

    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text}

    try:
        if client is not None:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
        else:
            async with httpx.AsyncClient(timeout=15.0) as owned:
                resp = await owned.post(url, json=payload)
                resp.raise_for_status()
        return True
    except httpx.HTTPError as exc:
        logger.error(f"Telegram alert failed: {exc}")
        return False


async def notify_run_summary(summary: ExecutionSummary) -> None:
    """ExecutionEngine notifier hook."""
    await send_telegram_message(format_run_summary(summary))
