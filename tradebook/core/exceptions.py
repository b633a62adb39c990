class AppError(Exception):
    """Base class for all application errors."""
    pass

class ConfigurationError(AppError):
    """Missing or invalid configuration (e.g. an unset env var)."""
    pass

class DataSourceError(AppError):
    """Price data provider failure (e.g. Finnhub unreachable)."""
    pass

class DataDestinationError(AppError):
    """Trade store failure (e.g. a Notion write was rejected)."""
    pass

class CSVStructureError(AppError):
    """The CSV has no header row or no data rows at all."""
    pass
