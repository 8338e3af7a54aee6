"""
Error taxonomy for the members middleware.

All three concrete errors are provider-side failure kinds. They reach the
middleware through a change stream's failure channel and are reported to
diagnostics, never translated into an outbound action. The reconciliation
algorithm itself cannot fail.
"""


class MembersError(Exception):
    """Base class for member directory failures."""


class DecodingError(MembersError):
    """Raised when a snapshot received from the provider is malformed."""


class EncodingError(MembersError):
    """Raised when an outbound payload cannot be serialized."""


class DataNotFoundError(MembersError):
    """Raised when a requested member entity is absent."""
