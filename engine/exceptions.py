"""Custom exceptions for the groove selection engine."""


class GrooveError(Exception):
    """Base exception for all groove engine errors."""

    pass


class InvalidInputError(GrooveError, ValueError):
    """Required selection input (bar context, role) is missing or malformed."""

    pass


class OperatorExecutionError(GrooveError):
    """An operator failed while strict operator mode was enabled."""

    def __init__(self, operator_id: str, phase: str, message: str):
        self.operator_id = operator_id
        self.phase = phase
        super().__init__(f"Operator {operator_id} failed during {phase}: {message}")


class RegistryError(GrooveError):
    """Error registering or looking up an operator."""

    pass


class GenerationError(GrooveError):
    """Error during per-bar onset generation."""

    pass


class ConfigurationError(GrooveError):
    """Error in engine configuration."""

    pass
