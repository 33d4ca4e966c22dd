"""Cross-cutting infrastructure shared by every module: logging and HTTP middleware."""
