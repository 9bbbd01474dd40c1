"""
Notifications app: fire-and-forget user notices.

This app provides:
- Notification model for in-app notices
- NotificationService, the port booking and payout flows call
- A Celery task that emails a notice after the transaction commits
- REST API for listing notices and marking them read

Usage:
    from notifications.services import NotificationService

    NotificationService.notify_booking_status(booking, event="confirmed", actor=provider)
    NotificationService.notify_payout_completed(payout)
"""
