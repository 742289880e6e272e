# errors.py

class ResearchError(Exception):
    """Base class for errors raised by the research core."""


class InvalidUrl(ResearchError, ValueError):
    """The URL does not parse as an absolute URL (or is not http/https where required)."""

    def __init__(self, url, reason: str = "not an absolute URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")


class InvalidCrawlRequest(ResearchError, ValueError):
    """The crawl budget cannot produce any page."""


class CompletionError(ResearchError):
    """The completion service could not produce a usable answer."""
