class DatasetAnalyzerError(Exception):
    """
    Base exception for all dataset analyzer errors
    """
    pass


class ServiceUnavailableError(DatasetAnalyzerError):
    """
    Raised when an external store or service cannot answer
    """
    pass


class ConfigurationError(DatasetAnalyzerError):
    """
    Raised when configuration or dictionary files are invalid
    """
    pass


class TaskNotFoundError(DatasetAnalyzerError):
    """
    Raised when an analysis task document does not exist
    """
    pass


class CannotEvaluateError(DatasetAnalyzerError):
    """
    Raised when a dataset has no readable field structure
    """
    pass
