"""Shared utilities: error handling, progress tracking and command-line parsing."""
