class RequestError(Exception):
    """Occurs when a registry request fails, returns an error status or an undecodable body."""


class MalformedManifest(Exception):
    """Occurs when a required field is missing or mistyped in a registry response."""


class PaginationError(ValueError):
    """Occurs when a requested page or page size doesn't fit the paginated data."""


class InvalidSettings(Exception):
    """Occurs when required setting is missing or has an incorrect value."""
