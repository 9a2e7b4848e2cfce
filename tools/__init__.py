"""Command line tools of flusio."""
