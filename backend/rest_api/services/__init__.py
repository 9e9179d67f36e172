"""
Services module.

- domain/: the order engine (business logic) - USE THIS
- notifications.py: role/user-scoped staff notifications
- receipts.py: finalized receipts handed to the printer channel
- background.py: fire-and-forget delivery of notifications and receipts
- realtime/: change-feed reconciliation

Usage:
    from rest_api.services.domain import OrderEngine
    from rest_api.services.notifications import RedisNotifier
"""
