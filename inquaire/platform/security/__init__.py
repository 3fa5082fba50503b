from inquaire.platform.security.repository import BaseRepository

__all__ = ["BaseRepository"]
