"""Unit tests for the TTS application.

This package contains test modules for all components of the application. Tests use
pytest with asyncio support; HTTP transports and audio players are replaced by fakes.
"""
