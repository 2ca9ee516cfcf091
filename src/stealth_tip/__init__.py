"""Stealth tipping and jackpot game client."""

__version__ = "1.0.0"
