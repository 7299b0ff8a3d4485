"""Subscription lifecycle: storage, hub requests, verification and content."""
