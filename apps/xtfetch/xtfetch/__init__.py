"""xtfetch: anti-detection HTTP and media delivery core for social media extraction."""

__version__ = "0.1.0"
