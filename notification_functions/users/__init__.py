from .profiles import RecipientProfileStore

__all__ = ["RecipientProfileStore"]
