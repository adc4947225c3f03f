"""Redis stores and in-memory request state services."""
