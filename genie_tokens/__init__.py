"""Token wallet client for the Genie assistant."""

from .main import WalletSession, create_wallet_session, wallet_session

__all__ = ["WalletSession", "create_wallet_session", "wallet_session"]
