"""Background jobs run outside the request cycle."""
