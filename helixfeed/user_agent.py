"""
User-Agent and Accept headers for outbound feed requests
"""

from typing import Dict, Optional

PRODUCT = "Helix-RSS-Monitor"
VERSION = "1.0"

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml, application/atom+xml"


def get_user_agent(
    product: Optional[str] = None,
    version: Optional[str] = None
) -> str:
    """
    Build the User-Agent string sent to feed servers

    Args:
        product: Product token, defaults to Helix-RSS-Monitor
        version: Product version, defaults to 1.0

    Returns:
        User-Agent string such as ``Helix-RSS-Monitor/1.0``
    """
    return f"{product or PRODUCT}/{version or VERSION}"


def feed_request_headers(user_agent: Optional[str] = None) -> Dict[str, str]:
    """Headers for a feed GET request."""
    return {
        "User-Agent": user_agent or get_user_agent(),
        "Accept": FEED_ACCEPT,
    }
