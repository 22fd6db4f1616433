"""Colloquy services."""
