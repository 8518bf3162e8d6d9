"""Built-in profile managers."""
