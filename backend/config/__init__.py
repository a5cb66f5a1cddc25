"""Configuration module for the coding agent sidecar."""

from config.settings import Settings, get_settings, init_directories
from config.prompts import ModeDefinition, ModeManager, NO_TOOL_USED_MESSAGE

__all__ = [
    "Settings",
    "get_settings",
    "init_directories",
    "ModeDefinition",
    "ModeManager",
    "NO_TOOL_USED_MESSAGE",
]
