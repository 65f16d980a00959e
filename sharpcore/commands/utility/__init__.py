"""General-purpose commands: help, ping, stats, reload."""
