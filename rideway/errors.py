"""Exception types raised by the maintenance engine."""


class MaintenanceError(Exception):
    """Base class for all rideway errors."""


class ValidationError(MaintenanceError):
    """Input rejected: missing interval configuration, bad mileage, etc."""


class NotFoundError(MaintenanceError):
    """Motorcycle or task missing, or not owned by the requesting user.

    Both cases carry the same message, so a caller cannot tell another
    user's record from a missing one.
    """


class PersistenceError(MaintenanceError):
    """A storage operation failed."""
