"""Per-office request composition."""
