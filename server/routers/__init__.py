"""Routes of the flusio API."""
