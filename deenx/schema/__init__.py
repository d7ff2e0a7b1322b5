"""Schema package exports."""

from .push_subscriptions import PrayerPushSubscription

__all__ = ["PrayerPushSubscription"]
