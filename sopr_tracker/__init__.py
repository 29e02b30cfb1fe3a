"""
SOPR Tracker

Spent Output Profit Ratio analysis for Solana tokens, built from holder
buy/sell history and rate-limited access to public market data APIs.
"""

__version__ = "0.1.0"
