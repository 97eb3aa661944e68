"""Command-line tools for perflink (``perflink`` console script)."""
