"""Memogram — save Telegram messages as Memos notes."""

__version__ = "0.3.0"
