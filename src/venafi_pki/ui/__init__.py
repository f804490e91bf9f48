"""Command-line surface for role management."""
