"""Citation parsing and verification services."""
