"""Citation markup normalization, keys, extraction and replacement."""
