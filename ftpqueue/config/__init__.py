"""Configuration module for ftpqueue.

This module handles saved connection settings and credentials:
- SettingsManager: JSON-based settings persistence
- CredentialManager: Password lookup via keyring
- Paths: Application data locations
- AppSettings: Settings dataclass
"""
