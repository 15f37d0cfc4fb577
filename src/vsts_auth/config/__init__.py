"""設定の読み込み"""

from vsts_auth.config.settings import (
    PROPERTY_FIELDS,
    VstsAuthSettings,
    default_settings_file,
    default_settings_folder,
    load_settings,
    parse_properties,
    properties_to_fields,
)

__all__ = [
    "PROPERTY_FIELDS",
    "VstsAuthSettings",
    "default_settings_file",
    "default_settings_folder",
    "load_settings",
    "parse_properties",
    "properties_to_fields",
]
