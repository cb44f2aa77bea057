from .bus import NotificationBus, WalletEvent

__all__ = ["NotificationBus", "WalletEvent"]
