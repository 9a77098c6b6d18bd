"""
Notifications Package

Fire-and-forget publishing of alerts and learner notifications.
"""

from progression.notifications.dispatcher import NotificationDispatcher, NotificationType

__all__ = ['NotificationDispatcher', 'NotificationType']
