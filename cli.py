# cli.py
import argparse
import json
import logging

from rich.console import Console
from rich.table import Table

from core.currency import CURRENCIES, CurrencyService
from core.tracker import PortfolioTracker
from scheduler.runner import run_daemon
from storage.json_store import (
    JsonFileStore, read_config, write_config, ensure_config_exists, validate_config_value
)
from utils.logging import get_logger, set_level

log = get_logger("cli")
console = Console()


def _build_tracker(cfg: dict | None = None, market_interval_sec: int | None = None) -> PortfolioTracker:
    cfg = cfg or read_config()
    return PortfolioTracker(
        JsonFileStore(),
        per_page=int(cfg["per_page"]),
        market_interval_sec=market_interval_sec or int(cfg["update_interval_sec"]),
        rates_interval_sec=int(cfg["rates_refresh_sec"]),
    )


def _pnl_style(value: float) -> str:
    return "green" if value >= 0 else "red"


def _print_report(tracker: PortfolioTracker):
    report = tracker.report()
    fmt = tracker.currency.format
    quote = report["quote_currency"]
    summary = report["summary"]

    if tracker.market.fetched_at is None:
        console.print("[yellow]Market data unavailable; holdings cannot be valued yet.[/yellow]")
    elif quote != tracker.currency.currency:
        console.print(f"[yellow]Prices are still quoted in {quote}.[/yellow]")

    table = Table(title=f"Crypto Portfolio ({quote})")
    table.add_column("ID", justify="left", style="dim")
    table.add_column("Coin", justify="left")
    table.add_column("Amount", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P/L", justify="right")
    table.add_column("P/L %", justify="right")

    for item in report["items"]:
        style = _pnl_style(item.profit_loss)
        change = item.coin.price_change_percent_24h
        table.add_row(
            item.holding.id,
            f"{item.coin.name} ({item.coin.symbol.upper()})",
            f"{item.holding.amount:,.8g}",
            fmt(item.purchase_price, quote),
            fmt(item.coin.current_price, quote),
            f"[{_pnl_style(change)}]{change:+.2f}%[/]",
            fmt(item.current_value, quote),
            f"[{style}]{fmt(item.profit_loss, quote)}[/]",
            f"[{style}]{item.profit_loss_percent:+.2f}%[/]",
        )
    console.print(table)

    pending = len(tracker.holdings.holdings) - len(report["items"])
    if pending:
        console.print(f"[dim]{pending} holding(s) not in the current market page.[/dim]")

    style = _pnl_style(summary.total_profit_loss)
    console.print(f"[b]Total Value:[/b] {fmt(summary.total_value, quote)}")
    console.print(
        f"[b]Total P/L:[/b] [{style}]{fmt(summary.total_profit_loss, quote)} "
        f"({summary.total_profit_loss_percent:+.2f}%)[/]"
    )

    if report["allocation"]:
        alloc = Table(title="Allocation")
        alloc.add_column("Coin", justify="left")
        alloc.add_column("Value", justify="right")
        alloc.add_column("Share", justify="right")
        for s in report["allocation"]:
            alloc.add_row(s.coin_symbol, fmt(s.value, quote), f"{s.percentage:.1f}%")
        console.print(alloc)


# -------- Commands --------

def cmd_track(args: argparse.Namespace):
    tracker = _build_tracker()
    tracker.start()
    if not tracker.holdings.holdings:
        console.print("No holdings yet. Add one with `crypto-portfolio add btc 0.5 30000`.")
        return 0
    _print_report(tracker)
    return 0


def cmd_add(args: argparse.Namespace):
    tracker = _build_tracker()
    tracker.start()
    try:
        holding = tracker.add_holding(args.coin, args.amount, args.price)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    console.print(
        f"Added {holding.coin_id} amount={args.amount} "
        f"price={tracker.currency.format(args.price)} (id {holding.id})"
    )
    _print_report(tracker)
    return 0


def cmd_rm(args: argparse.Namespace):
    tracker = _build_tracker()
    tracker.holdings.load()
    if not tracker.remove_holding(args.holding_id):
        console.print(f"No holding with id '{args.holding_id}'.")
        return 1
    console.print(f"Removed holding {args.holding_id}.")
    return 0


def cmd_currency(args: argparse.Namespace):
    service = CurrencyService(JsonFileStore())
    if args.code:
        code = args.code.strip().upper()
        if not service.set_currency(code):
            console.print(f"[red]Unsupported currency '{args.code}'.[/red] Choose one of: {', '.join(CURRENCIES)}")
            return 1
        console.print(f"Display currency set to {code}.")
        return 0

    for code, symbol in service.supported_currencies():
        marker = "*" if code == service.currency else " "
        console.print(f"{marker} {symbol:<3} {code}")
    return 0


def cmd_coins(args: argparse.Namespace):
    tracker = _build_tracker()
    tracker.refresh_rates()
    tracker.refresh_market()
    coins = tracker.market.search(args.search or "", limit=args.limit)
    if not coins:
        console.print("No coins match." if tracker.market.fetched_at else "Market data unavailable.")
        return 0

    quote = tracker.quote_currency
    fmt = tracker.currency.format
    compact = tracker.currency.format_compact
    t = Table(title=f"Top coins ({quote})")
    t.add_column("ID", justify="left")
    t.add_column("Name", justify="left")
    t.add_column("Symbol", justify="left")
    t.add_column("Price", justify="right")
    t.add_column("24h", justify="right")
    t.add_column("Market Cap", justify="right")
    t.add_column("Volume", justify="right")
    for c in coins:
        change = c.price_change_percent_24h
        t.add_row(
            c.id, c.name, c.symbol.upper(), fmt(c.current_price, quote),
            f"[{_pnl_style(change)}]{change:+.2f}%[/]",
            compact(c.market_cap), compact(c.total_volume),
        )
    console.print(t)
    return 0


def cmd_daemon(args: argparse.Namespace):
    cfg = read_config()
    interval = args.interval or int(cfg["update_interval_sec"])
    tracker = _build_tracker(cfg, market_interval_sec=interval)
    tracker.holdings.load()

    def job():
        tracker.tick(slack=args.jitter)
        _print_report(tracker)

    run_daemon(job_fn=job, interval_sec=interval, jitter_sec=args.jitter)
    return 0


def _parse_kv_list(pairs: list[str]) -> dict:
    out = {}
    for item in pairs or []:
        if "=" not in item:
            raise ValueError(f"Expected key=value, got '{item}'")
        k, v = item.split("=", 1)
        out[k.strip()] = v.strip()
    return out


def cmd_config(args: argparse.Namespace):
    # Always ensure there is a config file to work with
    ensure_config_exists()
    cfg = read_config()

    if args.path:
        from storage.json_store import CONFIG_PATH
        console.print(CONFIG_PATH)
        return 0

    if args.set:
        try:
            for k, v in _parse_kv_list(args.set).items():
                cfg[k] = validate_config_value(k, v)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        write_config(cfg)
        console.print("Config updated.")

    if args.show or not args.set:
        console.print(json.dumps(cfg, indent=2, ensure_ascii=False))
    return 0


# -------- Parser --------

def build_parser():
    p = argparse.ArgumentParser(prog="crypto-portfolio", description="Crypto Portfolio Tracker")
    p.add_argument("-v", "--verbose", action="store_true", help="Log fetches and refreshes")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_track = sub.add_parser("track", help="Fetch market data and value your holdings")
    p_track.set_defaults(func=cmd_track)

    p_add = sub.add_parser("add", help="Add a holding")
    p_add.add_argument("coin", help="Coin id or symbol from the top-100 list, e.g. bitcoin or btc")
    p_add.add_argument("amount", type=float, help="Quantity held")
    p_add.add_argument("price", type=float, help="Purchase price per coin, in the display currency")
    p_add.set_defaults(func=cmd_add)

    p_rm = sub.add_parser("rm", help="Remove a holding by id")
    p_rm.add_argument("holding_id", help="Holding id as shown by `track`")
    p_rm.set_defaults(func=cmd_rm)

    p_cur = sub.add_parser("currency", help="Show or set the display currency")
    p_cur.add_argument("code", nargs="?", help=f"One of {', '.join(CURRENCIES)}")
    p_cur.set_defaults(func=cmd_currency)

    p_coins = sub.add_parser("coins", help="List or search the top coins by market cap")
    p_coins.add_argument("--search", help="Filter by name or symbol")
    p_coins.add_argument("--limit", type=int, default=10, help="Rows to show (default 10)")
    p_coins.set_defaults(func=cmd_coins)

    p_daemon = sub.add_parser("daemon", help="Re-value the portfolio on a timer")
    p_daemon.add_argument("--interval", type=int, help="Seconds between runs (overrides config)")
    p_daemon.add_argument("--jitter", type=int, default=30, help="±seconds jitter (default 30)")
    p_daemon.set_defaults(func=cmd_daemon)

    p_cfg = sub.add_parser("config", help="Show or edit configuration")
    p_cfg.add_argument("--show", action="store_true", help="Show current config")
    p_cfg.add_argument("--set", nargs="*", help="Set key=value. Ex: --set update_interval_sec=300 per_page=50")
    p_cfg.add_argument("--path", action="store_true", help="Print the config file path and exit")
    p_cfg.set_defaults(func=cmd_config)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        set_level(logging.INFO)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
