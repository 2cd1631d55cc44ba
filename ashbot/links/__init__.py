"""Link extraction and webhook delivery."""

from ashbot.links.links import (
    BlacklistEntry,
    LinkHandler,
    extract_links,
    is_blacklisted,
    load_blacklist,
)

__all__ = [
    "BlacklistEntry",
    "LinkHandler",
    "extract_links",
    "is_blacklisted",
    "load_blacklist",
]
