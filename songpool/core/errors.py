from __future__ import annotations


class SongPoolError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class CatalogUnavailable(SongPoolError):
    pass


class CatalogSourceError(SongPoolError):
    pass


class EmptyPool(SongPoolError):
    pass


class InvalidRecord(SongPoolError):
    pass


class DownloadFailed(SongPoolError):
    pass
