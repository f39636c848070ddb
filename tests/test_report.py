# tests/test_report.py

from deckscout.analyzer import EMPTY_ANALYSIS_MESSAGE
from deckscout.report import BATTLE_SEPARATOR, NO_BATTLE_DATA, NO_CARD_DATA, build_report
from tests.helpers import make_record


def test_sections_in_order():
    records = [make_record("1", 200, ["Golem"]), make_record("2", 100, ["Golem"])]
    report = build_report(records, "Knight — Lvl 14 — Elixir: 3", header="Pick my deck.")

    assert report.startswith("Pick my deck.\n\nmy cards:\n\nKnight — Lvl 14 — Elixir: 3\n\n")
    assert "my battles (last 2):\n\nBattle 1" + BATTLE_SEPARATOR + "Battle 2" in report
    assert report.index("my battles") < report.index("Opponent card analysis")
    assert report.rstrip().endswith("1) Golem — 100% - 2 times")


def test_placeholders_when_empty():
    report = build_report([], "", header="H")
    assert report == "\n\n".join([
        "H",
        "my cards:",
        NO_CARD_DATA,
        "my battles (last 0):",
        NO_BATTLE_DATA,
        EMPTY_ANALYSIS_MESSAGE,
    ])


def test_window_capped():
    records = [make_record(str(i), 100 - i) for i in range(5)]
    report = build_report(records, None, header="H", cap=3)
    assert "my battles (last 3):" in report
    assert "Battle 3" not in report
