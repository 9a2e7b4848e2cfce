"""Business logic of flusio, on top of the shared models."""
