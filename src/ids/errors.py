# src/ids/errors.py

class ScanwatchError(Exception):
    """Base class for every error raised by the detection engine."""

class ConfigError(ScanwatchError, ValueError):
    """Detector configuration that would make detection meaningless."""

class MalformedObservation(ScanwatchError, ValueError):
    """An observation that cannot be parsed; dropped and counted by the pipeline."""

class DeliveryError(ScanwatchError):
    """An alert sink failed to deliver an alert."""

class PipelineClosed(ScanwatchError):
    """Submission to a pipeline that is not accepting observations."""
