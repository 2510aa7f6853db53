"""Notification modules for SNS messaging."""

from sweeper.notifications.sns_notifier import SNSNotifier

__all__ = ["SNSNotifier"]
