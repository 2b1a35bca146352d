"""
Exception hierarchy for the UFLP toolkit. Each layer raises its own subclass
so the benchmark harness can record failures per (instance, algorithm).
"""
class UflpError(Exception):
    """Base class for facility-location errors."""

class ConfigError(UflpError):
    pass

class InvalidInstanceError(UflpError):
    """Malformed instance: bad shapes, negative or NaN costs, unreachable clients."""

class OracleError(UflpError):
    """LP oracle did not deliver an optimal relaxation."""

class DataLoadError(UflpError):
    pass

class BenchmarkError(UflpError):
    pass

class ReportWriteError(UflpError):
    pass
