"""
Error Taxonomy

Every failure the live dashboard can see falls into one of three kinds,
each with its own recovery:

- TransportError: a snapshot could not be delivered. Recovered by
  reconnecting; surfaced only as a degraded flag.
- DataShapeError: a record field is missing or malformed. Recovered per
  field by falling back to its documented default.
- SetupError: a stream could not be established at all. Reported once as
  a terminal degraded state for that stream only.

None of these may cross from one stream into another.
"""


class FinanceTrackerError(Exception):
    """Base exception for the finance tracker."""
    pass


class TransportError(FinanceTrackerError):
    """A snapshot delivery failed."""
    pass


class SetupError(FinanceTrackerError):
    """A subscription could not be established."""
    pass


class DataShapeError(FinanceTrackerError):
    """A record field could not be parsed into its expected type."""
    pass
