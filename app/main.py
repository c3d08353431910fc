"""
Headless Runner for the Finance Tracker

Streams the configured user's data and logs every published dashboard
state as one structured line, until interrupted. Rendering (charts,
forms) lives in the web client; this runner is for operating and
debugging the live aggregation layer on its own.

Usage:
    USER_ID=<uid> FIRESTORE_PROJECT_ID=... FIRESTORE_CREDENTIALS_PATH=... \
        python -m app.main
"""

import asyncio
import logging
from decimal import Decimal

import structlog

from finance_tracker.config import get_settings
from finance_tracker.models.dashboard import DashboardState
from finance_tracker.orchestrator import create_app_components


logger = structlog.get_logger("finance_tracker.app")


def format_amount(amount: Decimal, symbol: str) -> str:
    """Format an amount the way the web client shows it (₹1234.50)."""
    return f"{symbol}{amount:.2f}"


def summarize(state: DashboardState, symbol: str) -> dict:
    """Flatten a dashboard state into loggable fields."""
    metrics = state.metrics
    return {
        "loading": state.loading,
        "degraded": [name for name, s in state.streams.items() if s.degraded],
        "total_expenses": format_amount(metrics.total_expenses, symbol),
        "monthly_subscriptions": format_amount(metrics.monthly_subscriptions, symbol),
        "yearly_subscriptions": format_amount(metrics.yearly_subscriptions, symbol),
        "portfolio_value": format_amount(metrics.total_current_value, symbol),
        "returns": f"{format_amount(metrics.total_returns, symbol)} ({metrics.return_percentage:.2f}%)",
        "net_worth": format_amount(metrics.net_worth, symbol),
        "by_category": {k: format_amount(v, symbol) for k, v in metrics.expense_by_category.items()},
        "recent": [
            f"{e.date or '-'} {e.description} {format_amount(e.amount, symbol)}"
            for e in state.recent_transactions
        ],
    }


async def run() -> int:
    """Run the dashboard until cancelled. Returns an exit code."""
    settings = get_settings().app
    # Wiring connects to Firestore and may sleep between retries
    dashboard, _ = await asyncio.to_thread(
        create_app_components, loop=asyncio.get_running_loop(),
    )

    def on_state(state: DashboardState) -> None:
        if state.loading:
            return
        logger.info("dashboard_state", **summarize(state, settings.currency_symbol))

    dashboard.subscribe(on_state)
    if not dashboard.open():
        logger.error("no_user", hint="Set USER_ID to the uid whose data should be streamed")
        return 1

    try:
        await asyncio.Event().wait()
    finally:
        dashboard.close()
    return 0


def main() -> int:
    """Main entry point."""
    level = logging.DEBUG if get_settings().app.debug_mode else logging.INFO
    logging.basicConfig(format="%(message)s", level=level)
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
