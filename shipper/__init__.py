"""Cross-platform release pipeline for Cargo-built command-line tools."""

__version__ = "0.1.0"
