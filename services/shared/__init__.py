"""Models, queries and helpers shared by the API, the jobs and the CLI."""
