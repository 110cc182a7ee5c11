# arbwatch/reporting.py
import logging
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import Opportunity, StatusRow
from .price import format_price

NO_DATA = "no data yet"


class OpportunityReporter:
    """Console sink for detected opportunities."""
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.count = 0

    def __call__(self, opp: Opportunity) -> None:
        self.count += 1
        self.logger.info(f"💰 OPPORTUNITY #{self.count}: {opp.describe()}")


def build_status_table(rows: List[StatusRow]) -> Table:
    table = Table(title="📡 Live Market Feed")
    table.add_column("Symbol", style="cyan")
    table.add_column("Exchange", style="magenta")
    table.add_column("Bid", justify="right", style="green")
    table.add_column("Ask", justify="right", style="red")
    table.add_column("Spread", justify="right")

    for row in sorted(rows, key=lambda r: (r.symbol, r.exchange)):
        spread = format_price(row.spread)
        if row.spread < 0:
            spread = f"[bold yellow]{spread} (crossed)[/bold yellow]"
        table.add_row(row.symbol, row.exchange.upper(), format_price(row.bid), format_price(row.ask), spread)
    return table


class StatusDashboard:
    """
    Heartbeat sink. Prints the latest quote per symbol/exchange as a rich
    table, or a single 'no data yet' panel before the first update.
    """
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def __call__(self, rows: List[StatusRow]) -> None:
        if not rows:
            self.console.print(Panel(f"[dim]{NO_DATA}[/dim]", title="💓 Heartbeat"))
            return
        self.console.print(build_status_table(rows))
