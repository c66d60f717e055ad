"""Utility functions: time parsing, JSON extraction, bounded remote calls."""
