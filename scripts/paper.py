#!/usr/bin/env python3
"""Paper trading from the command line.

Usage:
    python scripts/paper.py price BTC
    python scripts/paper.py buy BTC 0.01
    python scripts/paper.py sell BTC 0.005
    python scripts/paper.py portfolio
    python scripts/paper.py history --limit 10 --asset BTC
    python scripts/paper.py reset --yes
    python scripts/paper.py --json portfolio    # payload only
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import logging

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)


def _summary(command: str, data: dict) -> str | None:
    from omnitrade.paper.wallet import format_pnl, format_price

    if command == "price":
        change = data["change24hPercent"]
        return f"{data['symbol']}  {format_price(data['price'])}  ({change:+.2f}% 24h)"
    if command == "portfolio":
        pnl = format_pnl(data["totalPnl"], data["totalPnlPercent"])
        return f"Total {format_price(data['totalValue'])}  P&L {pnl}"
    if command in ("buy", "sell"):
        t = data["trade"]
        return f"{t['side'].upper()} {t['amount']} {t['asset']} @ {format_price(t['price'])}"
    return None


def main() -> int:
    from omnitrade.tools import market, paper

    parser = argparse.ArgumentParser(description="OmniTrade paper wallet")
    parser.add_argument("--json", action="store_true", help="Print only the JSON payload")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("price", help="Current Binance price and 24h stats")
    p.add_argument("asset")

    for name in ("buy", "sell"):
        p = sub.add_parser(name, help=f"Paper {name} at the current price")
        p.add_argument("asset")
        p.add_argument("amount", type=float)

    sub.add_parser("portfolio", help="Valued holdings and P&L")

    p = sub.add_parser("history", help="Recent paper trades, newest first")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--asset", default=None)

    p = sub.add_parser("reset", help="Restore the initial USDT balance")
    p.add_argument("--yes", action="store_true", help="Confirm the reset")

    args = parser.parse_args()

    if args.command == "price":
        result = market.get_price(args.asset)
    elif args.command == "buy":
        result = paper.paper_buy(args.asset, args.amount)
    elif args.command == "sell":
        result = paper.paper_sell(args.asset, args.amount)
    elif args.command == "portfolio":
        result = paper.paper_portfolio()
    elif args.command == "history":
        result = paper.paper_history(args.limit, args.asset)
    else:
        result = paper.paper_reset(confirm=args.yes)

    if result["ok"] and not args.json:
        line = _summary(args.command, result["data"])
        if line:
            print(line)
    print(json.dumps(result, indent=2))
    return 0 if result["ok"] else 1


if __name__ == "__main__":
    sys.exit(main())
