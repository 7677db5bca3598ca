"""Optional modules built on the Store's public contract."""
