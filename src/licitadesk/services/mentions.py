"""
Opportunity mentions inside chat messages.

A mention is written ``@[Title](opportunity-id)``; the client renders it as a
link to the opportunity.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union

MENTION_PATTERN = re.compile(r"@\[([^\]]+)\]\(([^)]+)\)")


@dataclass(frozen=True)
class TextSegment:
    text: str
    kind: str = "text"


@dataclass(frozen=True)
class MentionSegment:
    title: str
    opportunity_id: str
    kind: str = "mention"


Segment = Union[TextSegment, MentionSegment]


def parse_mentions(body: str) -> List[Segment]:
    """Split a message body into text and mention segments, in order."""
    segments: List[Segment] = []
    position = 0
    for match in MENTION_PATTERN.finditer(body):
        if match.start() > position:
            segments.append(TextSegment(body[position:match.start()]))
        segments.append(MentionSegment(match.group(1), match.group(2)))
        position = match.end()
    if position < len(body):
        segments.append(TextSegment(body[position:]))
    return segments


def mentioned_ids(body: str) -> List[str]:
    return [match.group(2) for match in MENTION_PATTERN.finditer(body)]


def format_mention(title: str, opportunity_id: str) -> str:
    clean = title.replace("[", "(").replace("]", ")")
    return f"@[{clean}]({opportunity_id})"


def active_mention_query(body: str, cursor: Optional[int] = None) -> Optional[str]:
    """
    The partial title after an unfinished ``@`` at the cursor, if any.

    Used to drive the suggestion list while the user is typing.
    """
    end = len(body) if cursor is None else cursor
    at = body.rfind("@", 0, end)
    if at < 0:
        return None
    fragment = body[at + 1:end]
    if fragment.startswith("[") or "\n" in fragment:
        return None
    if at > 0 and not body[at - 1].isspace():
        return None
    return fragment
