"""Soup Sleuth: discovery and completion engine for lateral-thinking puzzles."""
