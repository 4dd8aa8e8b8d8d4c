"""Configuration and logging plumbing shared by the CLI."""
