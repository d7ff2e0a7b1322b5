from . import cron, push

__all__ = ["cron", "push"]
