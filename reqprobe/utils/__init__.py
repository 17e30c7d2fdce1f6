"""
Utility modules for the probe.
"""

from .config import Config, ConfigManager, OutputFormat, load_config

__all__ = ['Config', 'ConfigManager', 'OutputFormat', 'load_config']
