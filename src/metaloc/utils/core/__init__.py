"""Core utilities: exceptions, error tracking and version information."""
