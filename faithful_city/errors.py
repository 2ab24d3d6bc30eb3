"""
faithful_city.errors — Domain Error Taxonomy
=============================================

Every failure a service can surface to its caller.  Services raise these
unmodified; nothing in the core retries.  The HTTP layer maps each class to
a status code in :mod:`faithful_city.api.main`.
"""

from __future__ import annotations


class FaithfulCityError(Exception):
    """Base class for all domain errors."""


class ConflictError(FaithfulCityError):
    """A create collided with an existing row (duplicate identifier)."""


class PolicyError(FaithfulCityError):
    """A business rule rejected the operation (e.g. the admin cap)."""


class UploadError(FaithfulCityError):
    """Writing the blob to object storage failed; no metadata was stored."""


class PersistError(FaithfulCityError):
    """The blob was stored but its metadata row could not be inserted."""


class NotFoundError(FaithfulCityError):
    """A point lookup found no row.

    List queries never raise this; an empty family simply yields ``[]``.
    """


class TransportError(FaithfulCityError):
    """The database could not be reached or dropped the connection."""
