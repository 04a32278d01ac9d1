"""
Exception taxonomy for the SMBO engine.

Construction, configuration and engine-state errors propagate to the caller.
Everything that happens inside a run (failed evaluations, surrogate fit
failures, proposal exhaustion) is recorded on the run result instead.
"""


class SMBOError(Exception):
    """Base class for all errors raised by the package."""


class ConstructionError(SMBOError):
    """Malformed parameter space (duplicate names, unknown or cyclic requirements)."""


class InvalidConfiguration(SMBOError, ValueError):
    """A configuration violates its parameter space."""

    def __init__(self, message: str, parameter: str = None):
        super().__init__(message)
        self.parameter = parameter


class ConfigurationError(SMBOError, ValueError):
    """Control settings are inconsistent with each other or with the surrogate."""


class EvaluationFailure(SMBOError):
    """The objective function failed, timed out or returned a non-finite outcome."""


class SurrogateFitFailure(SMBOError):
    """A surrogate model could not be fitted on the current archive."""


class SurrogatePredictionFailure(SMBOError):
    """A fitted surrogate or the infill criterion failed while scoring candidates."""


class ProposalExhaustion(SMBOError):
    """No novel configuration is left in a finite parameter space."""


class EngineStateError(SMBOError, RuntimeError):
    """An engine operation was requested in a state that does not allow it."""


class PathFrozenError(SMBOError, RuntimeError):
    """Attempt to append to an optimization path after its run completed."""
