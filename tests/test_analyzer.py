# tests/test_analyzer.py

from deckscout.analyzer import (
    EMPTY_ANALYSIS_MESSAGE,
    OpponentCardAnalyzer,
    build_analysis_section,
    build_card_frequency,
)
from tests.helpers import make_record


def _four_battles():
    return [
        make_record("1", 400, ["X (Lvl 11)", "A"], self_lost=True),
        make_record("2", 300, ["X", "B"]),
        make_record("3", 200, ["X", "X", "C"], self_lost=True),
        make_record("4", 100, ["D"], identity_resolved=False),
    ]


class TestCardFrequency:
    def test_three_of_four(self):
        entries = build_card_frequency(_four_battles(), cap=30)
        assert len(entries) == 2
        top = entries[0]
        assert top.card_name == "X"
        assert top.occurrence_count == 3
        assert top.percent_of_window == 75

    def test_ties_broken_by_name(self):
        entries = build_card_frequency(_four_battles(), cap=30)
        assert entries[1].card_name == "A"
        assert entries[1].percent_of_window == 25

    def test_full_ranking(self):
        entries = OpponentCardAnalyzer(cap=30).frequency(_four_battles())
        assert [e.card_name for e in entries] == ["X", "A", "B", "C", "D"]

    def test_half_rounds_up(self):
        records = [make_record(str(i), 100 - i, ["Zap"] if i == 0 else ["Log"]) for i in range(8)]
        entries = OpponentCardAnalyzer(cap=30).frequency(records)
        by_name = {e.card_name: e for e in entries}
        assert by_name["Zap"].percent_of_window == 13
        assert by_name["Log"].percent_of_window == 88

    def test_window_limited_to_cap(self):
        entries = build_card_frequency(_four_battles(), cap=2)
        assert entries[0].card_name == "X"
        assert entries[0].occurrence_count == 2
        assert entries[0].percent_of_window == 100
        assert len(entries) == 1

    def test_empty(self):
        assert build_card_frequency([], cap=30) == []


class TestAnalysisSection:
    def test_empty_window_message(self):
        assert build_analysis_section([]) == EMPTY_ANALYSIS_MESSAGE

    def test_header_counts(self):
        section = build_analysis_section(_four_battles())
        header = section.split("\n")[0]
        assert "last 4 battles" in header
        assert "2 losses" in header
        assert "1 without an identified player side" in header

    def test_entry_lines(self):
        lines = build_analysis_section(_four_battles()).split("\n")
        assert lines[2] == "1) X — 75% - 3 times"
        assert lines[3] == "2) A — 25% - 1 times"

    def test_unparsed_decks(self):
        section = build_analysis_section([make_record("1", 100, [])])
        assert "could not be parsed" in section
