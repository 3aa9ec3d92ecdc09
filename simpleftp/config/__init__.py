"""Configuration module for SimpleFTP.

This module handles application settings:
- AppSettings: Settings dataclass with environment overrides
- SettingsManager: JSON-based settings persistence
- Paths: Application, log and staging directory discovery
"""
