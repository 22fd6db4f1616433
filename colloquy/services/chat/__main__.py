"""Entry point for: python3 -m colloquy.services.chat"""
import asyncio
from colloquy.services.chat.api import ChatService

service = ChatService()
asyncio.run(service.run())
