"""Command-line interface for bootloader."""
