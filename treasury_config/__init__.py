"""
treasury_config -- Deployment settings of the sync job.

    from treasury_config import load_settings
    settings = load_settings("config/treasury_sync.yaml")
"""

from treasury_config.settings import SyncSettings, load_settings, settings_from_dict

__all__ = ["SyncSettings", "load_settings", "settings_from_dict"]
