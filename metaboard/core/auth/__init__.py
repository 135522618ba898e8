from .context import bind_current_user, current_user, current_user_id

__all__ = ["bind_current_user", "current_user", "current_user_id"]
