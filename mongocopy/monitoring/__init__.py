"""
Progress Monitoring
"""
from .progress import LoggingProgressReporter, ProgressEvent, ProgressReporter, TqdmProgressReporter
