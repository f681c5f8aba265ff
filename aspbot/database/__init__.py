from aspbot.database.session import Database

__all__ = ["Database"]
