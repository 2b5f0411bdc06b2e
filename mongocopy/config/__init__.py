"""
Configuration Management
"""
from .manager import ConfigManager, LoggingSettings, TransferJob, TransferMode, TransferSettings
