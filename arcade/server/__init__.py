"""
Server module for Gasless Arcade
Provides the FastAPI paywall backend
"""

from arcade.server.dependencies import ArcadeServices, build_services

__all__ = ["ArcadeServices", "build_services"]
