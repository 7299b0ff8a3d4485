"""WebSub subscriber service.

Discovers a topic's hub, registers subscriptions with it, answers the hub's
verification handshake and authenticates inbound content notifications.
"""

__version__ = "0.1.0"
