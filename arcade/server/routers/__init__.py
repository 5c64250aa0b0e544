from arcade.server.routers import game, general, paywall

__all__ = ["game", "general", "paywall"]
