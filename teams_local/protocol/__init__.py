"""Wire protocol for the meeting application's local control endpoint."""
