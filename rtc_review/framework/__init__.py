"""Scoring thresholds, scoring engine and session summaries."""
