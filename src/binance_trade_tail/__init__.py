"""
Binance Trade Tail - stream Binance market data to stdout.

Subscribes to Binance WebSocket channels under the exchange's control-message
rate limit and writes every received event as one JSON line.
"""

__version__ = "1.0.0"
