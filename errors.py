"""
Engine error taxonomy.

Integrity problems in the exercise catalog are fatal and surface to the
caller. Missing users, profiles or exercises are reported separately so
the service layer can map them to a "not found" response.
"""


class DataIntegrityError(ValueError):
    """The exercise catalog is inconsistent.

    Raised for dangling prerequisite or unlock references, duplicate
    exercise ids and prerequisite cycles. The catalog is never repaired.
    """


class NotFoundError(LookupError):
    """A required user, profile, history or exercise does not exist."""
