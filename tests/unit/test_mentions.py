"""
Unit tests for opportunity mentions in chat messages.
"""

from licitadesk.services.mentions import (
    MentionSegment,
    TextSegment,
    active_mention_query,
    format_mention,
    mentioned_ids,
    parse_mentions,
)

OPP_ID = "6f1c2a9e-0d3b-4c57-9a61-2b7f0f3e8d11"


class TestParseMentions:
    def test_text_and_mention_in_order(self):
        body = f"Veja @[Pregão 12/2025]({OPP_ID}) antes de sexta"
        assert parse_mentions(body) == [
            TextSegment("Veja "),
            MentionSegment("Pregão 12/2025", OPP_ID),
            TextSegment(" antes de sexta"),
        ]

    def test_plain_text(self):
        assert parse_mentions("sem menções") == [TextSegment("sem menções")]

    def test_unfinished_mention_stays_text(self):
        assert parse_mentions("@[Pregão") == [TextSegment("@[Pregão")]

    def test_mentioned_ids(self):
        body = f"@[A]({OPP_ID}) e @[B](other-id)"
        assert mentioned_ids(body) == [OPP_ID, "other-id"]


class TestFormatMention:
    def test_brackets_in_title_are_replaced(self):
        assert format_mention("Lote [2]", OPP_ID) == f"@[Lote (2)]({OPP_ID})"

    def test_formatted_mention_parses_back(self):
        body = format_mention("Edital [urgente]", OPP_ID)
        assert parse_mentions(body) == [MentionSegment("Edital (urgente)", OPP_ID)]


class TestActiveMentionQuery:
    def test_fragment_after_at(self):
        assert active_mention_query("olha @preg") == "preg"

    def test_bare_at(self):
        assert active_mention_query("olha @") == ""

    def test_respects_cursor(self):
        assert active_mention_query("@preg resto", cursor=5) == "preg"

    def test_no_at(self):
        assert active_mention_query("nada aqui") is None

    def test_completed_mention(self):
        assert active_mention_query(f"@[A]({OPP_ID})") is None

    def test_email_address_is_not_a_mention(self):
        assert active_mention_query("mail fulano@empresa") is None

    def test_newline_ends_the_query(self):
        assert active_mention_query("@preg\nnova linha") is None
