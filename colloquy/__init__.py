"""
Colloquy - conversational request handler.

Builds prompt context from stored turns, asks a completion provider for a
reply, and decides whether the dialogue should continue.
"""
__version__ = "0.1.0"
