"""Database access for the analytics server."""
