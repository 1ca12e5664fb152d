"""XSSGate: inline HTTP request guard with rate limiting, XSS screening and
attack-log archival."""

__version__ = "1.0.0"
