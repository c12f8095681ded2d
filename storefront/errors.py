# storefront/errors.py


class CatalogError(Exception):
    """Base error; ``status_code`` is what the HTTP layer answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    status_code = 400


class NotFoundError(CatalogError):
    status_code = 404


class StoreError(CatalogError):
    status_code = 500


class SyncError(CatalogError):
    status_code = 500


class RemoteCatalogError(CatalogError):
    status_code = 502
