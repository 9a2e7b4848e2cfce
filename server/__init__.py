"""HTTP API and background jobs of flusio."""
