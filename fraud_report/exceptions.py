class FraudReportError(Exception):
    """Base class for failures that abort a report run"""


class DataInputError(FraudReportError, ValueError):
    """Missing or malformed input file, or an unexpected label value"""

    def __init__(self, message, path=None):
        self.path = path
        if path is not None:
            message = f"{message} (path: {path})"
        super().__init__(message)


class DegenerateInputError(FraudReportError, ValueError):
    """Training or evaluation data that holds fewer than two classes"""

    def __init__(self, message, class_counts=None):
        self.class_counts = dict(class_counts or {})
        super().__init__(
            f"{message}: expected 2 classes, observed {len(self.class_counts)} "
            f"{self.class_counts}"
        )


class ProbabilityLookupError(FraudReportError, IndexError):
    """Record position outside the evaluated dataset"""

    def __init__(self, position, size):
        self.position = position
        self.size = size
        super().__init__(
            f"Record position {position} is out of bounds for a dataset of {size} records"
        )
