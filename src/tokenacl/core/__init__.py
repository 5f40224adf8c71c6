from .settings import TokenAclSettings, get_settings

__all__ = ["TokenAclSettings", "get_settings"]
