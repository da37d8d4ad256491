# Overview: Domain error taxonomy shared by services and routes.

"""
Every error a core operation reports to its caller.

Routes translate these into JSON bodies using ``status_code``; the message is
shown to the operator verbatim, so keep it human readable.
"""


class VisitDeskError(Exception):
    status_code = 400

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(VisitDeskError):
    """Entity id does not resolve."""
    status_code = 404


class InvalidTransitionError(VisitDeskError):
    """State machine violation (e.g. starting a visit that is already ACTIVE)."""
    status_code = 409


class VisitNotActiveError(InvalidTransitionError):
    pass


class InvalidInputError(VisitDeskError):
    """Bad parameter: non-positive hours, empty seat list, unknown method..."""
    status_code = 400


class InvalidSeatError(InvalidInputError):
    pass


class OverLimitError(InvalidInputError):
    pass


class PricingUnavailableError(VisitDeskError):
    """Catalog lookup failed; money operations abort rather than guess a price."""
    status_code = 422


class ConflictError(VisitDeskError):
    """Concurrent mutation detected (lock timeout, optimistic version mismatch)."""
    status_code = 409
