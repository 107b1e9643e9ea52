"""Exceptions raised by the model wrappers."""


class NotEvaluatedError(RuntimeError):
    """A result was requested from a model that has not been run yet."""
