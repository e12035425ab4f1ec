from .config_manager import ConfigManager, ConfigSchema, create_default_config

__all__ = [
    'ConfigManager',
    'ConfigSchema',
    'create_default_config',
]
