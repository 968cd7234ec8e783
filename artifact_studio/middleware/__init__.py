"""Request-level middleware: logging setup and request timing."""
