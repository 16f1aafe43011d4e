"""
Bitbucket REST API access.
"""

from .discovery import BitbucketClient, parse_page

__all__ = ["BitbucketClient", "parse_page"]
