"""
Feed parsers module.
"""

from parsers.feed_parser import (
    parse_feed,
    parse_feed_item,
    handle_from_url,
    FeedParseResult,
)

__all__ = [
    "parse_feed",
    "parse_feed_item",
    "handle_from_url",
    "FeedParseResult",
]
