class ConfigurationError(ValueError):
    """Raised when engine settings or reference pose data are invalid."""


class UnknownReferencePoseError(ConfigurationError, KeyError):
    """Raised when no reference pose exists for an (exercise, view angle) pair."""

    def __init__(self, exercise: str, view_angle: str):
        self.exercise = exercise
        self.view_angle = view_angle
        super().__init__(f"No reference pose for exercise={exercise!r}, view={view_angle!r}")

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]
