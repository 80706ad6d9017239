from workhub.models.directory import Organization, User

__all__ = ["Organization", "User"]
