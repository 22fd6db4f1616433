"""Shared building blocks for Colloquy services."""
