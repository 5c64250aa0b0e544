"""
Gasless Arcade
x402 pay-per-play backend and autonomous auto-pay agent
"""

__version__ = "0.1.0"
