"""Output renderers — standard terminal text and JSON."""
