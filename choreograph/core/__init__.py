from choreograph.core.config import Settings, get_settings
