class ConfigValidationError(ValueError):
    """Configuration values fall outside their documented ranges."""
    def __init__(self, errors, message=None):
        self.errors = list(errors)
        if message is None:
            message = "Invalid configuration: " + "; ".join(self.errors)
        super().__init__(message)


class UnknownPresetError(KeyError):
    """Preset name not found in the registry."""
    def __init__(self, name):
        self.name = name
        super().__init__(f"Unknown preset: {name!r}")


class UnknownModeError(ValueError):
    """Visualization mode, aggregation mode or color scaling not recognized."""
    def __init__(self, kind, value, allowed):
        self.kind = kind
        self.value = value
        self.allowed = tuple(allowed)
        super().__init__(f"Unknown {kind}: {value!r} (expected one of {', '.join(self.allowed)})")
