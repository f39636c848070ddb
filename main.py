# main.py

import argparse
import logging
import os

from deckscout.config import DEFAULT_BATTLE_CAP, DEFAULT_DB_PATH, DEFAULT_MAX_PAGES, KEY_FINAL_TEXT, ScoutConfig
from deckscout.database import SessionStore
from deckscout.scraper.core import BattleLogScraper
from deckscout.sink import safe_print


def resolve_db_path(cli_value: str = "") -> str:
    return cli_value.strip() or os.getenv("DECKSCOUT_DB_PATH", DEFAULT_DB_PATH)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect a RoyaleAPI battle log into a deck-building report")
    parser.add_argument("--tag", required=True, help="Player tag, with or without '#'")
    parser.add_argument("--cap", type=int, default=DEFAULT_BATTLE_CAP, help="Battles to keep and analyze")
    parser.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES, help="Safety cap for history pages")
    parser.add_argument("--min-card-level", type=int, default=0, help="Leave out cards below this level")
    parser.add_argument("--skip-cards", action="store_true", help="Do not collect the card inventory")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--db", default="", help="SQLite DB path (defaults to DECKSCOUT_DB_PATH or data/deckscout.db)")
    parser.add_argument("--storage-state", default="", help="Cookie storage JSON to load and save")
    parser.add_argument("--output", default="", help="Write the report to this file instead of the clipboard")
    parser.add_argument("--restart", action="store_true", help="Discard stored progress and start over")
    parser.add_argument("--show", action="store_true", help="Print the last finished report and exit")
    parser.add_argument("--print-report", action="store_true", help="Also print the report when done")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    return parser


def main() -> int:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ScoutConfig(
            player_tag=args.tag,
            battle_cap=args.cap,
            max_pages=args.max_pages,
            min_card_level=args.min_card_level,
            collect_inventory=not args.skip_cards,
        )
    except ValueError as exc:
        safe_print(f"❌ {exc}")
        return 2

    store = SessionStore(resolve_db_path(args.db), namespace=config.player_tag)
    try:
        if args.show:
            report = store.get(KEY_FINAL_TEXT)
            if not report:
                safe_print(f"No finished report stored for #{config.player_tag}")
                return 1
            safe_print(report)
            return 0

        scraper = BattleLogScraper(
            config,
            store,
            headless=not args.headed,
            storage_state_path=args.storage_state.strip() or None,
        )
        result = scraper.run(restart=args.restart, output_path=args.output.strip() or None)

        if result.status in ("error", "busy"):
            for error in result.errors:
                safe_print(f"❌ {error}")
            return 1

        safe_print(f"✅ #{config.player_tag}: {len(result.records)} battles over {result.pages} pages ({result.status})")
        for error in result.errors:
            safe_print(f"⚠️ {error}")
        if args.print_report:
            safe_print(result.report)
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
