"""SharpCore: a prefix-command Discord bot with pluggable command units."""

__version__ = "1.0.0"
