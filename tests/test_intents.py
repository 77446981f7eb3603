"""Tests for the keyword router.

Run:
    pytest tests/test_intents.py -v
"""

import pytest

from jarvis.graph.intents import (
    KEYWORD_TABLE,
    DateQuery,
    JokeRequest,
    OpenDomain,
    SystemStatsQuery,
    TimeQuery,
    is_local,
    route,
)


class TestRoute:
    @pytest.mark.parametrize(
        "transcript,expected",
        [
            ("What time is it?", TimeQuery()),
            ("What's the date today", DateQuery()),
            ("how busy is the CPU", SystemStatsQuery()),
            ("Tell me a joke", JokeRequest()),
        ],
    )
    def test_command_keywords(self, transcript, expected):
        assert route(transcript) == expected

    def test_matching_is_case_insensitive(self):
        assert route("TIME PLEASE") == TimeQuery()
        assert route("Cpu load?") == SystemStatsQuery()

    def test_first_keyword_in_table_order_wins(self):
        """'time' is checked before 'joke' regardless of word order."""
        assert route("tell me a joke about the time") == TimeQuery()
        assert route("what's the time and tell me a joke") == TimeQuery()

    def test_substring_match_inside_words(self):
        # "update" contains "date"
        assert route("any update on that?") == DateQuery()
        assert route("sometimes I wonder") == TimeQuery()

    def test_open_domain_keeps_transcript(self):
        assert route("What is the capital of France?") == OpenDomain("What is the capital of France?")

    def test_empty_transcript_is_open_domain(self):
        assert route("") == OpenDomain("")

    def test_routing_is_deterministic(self):
        transcripts = ["joke", "date and cpu", "hello there", "CPU time"]
        assert [route(t) for t in transcripts] == [route(t) for t in transcripts]

    def test_table_order(self):
        assert [keyword for keyword, _ in KEYWORD_TABLE] == ["time", "date", "cpu", "joke"]


class TestIsLocal:
    def test_command_intents_are_local(self):
        for intent in (TimeQuery(), DateQuery(), SystemStatsQuery(), JokeRequest()):
            assert is_local(intent)

    def test_open_domain_is_not_local(self):
        assert not is_local(OpenDomain("hi"))
