"""
Utility modules for the contracts service
"""
from .contracts_config_loader import ContractsConfig, TemplateDefaults, load_contracts_config

__all__ = [
    'ContractsConfig',
    'TemplateDefaults',
    'load_contracts_config',
]
