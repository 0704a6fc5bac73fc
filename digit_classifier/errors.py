"""Exception types raised by the digit classifier package."""


class DigitClassifierError(Exception):
    """Base class for every error raised by this package."""


class FormatError(DigitClassifierError, ValueError):
    """Dataset file is malformed, truncated or cannot be opened."""


class TrainingError(DigitClassifierError, ValueError):
    """Training or testing was given an unusable dataset."""


class ModelStateError(DigitClassifierError, RuntimeError):
    """Prediction or testing requested before a model was trained or loaded."""


class ConfigError(DigitClassifierError, ValueError):
    """Invalid hyperparameter or pipeline configuration."""


class ModelFileError(DigitClassifierError, OSError):
    """Model file is missing, unreadable or not a serialized model."""
