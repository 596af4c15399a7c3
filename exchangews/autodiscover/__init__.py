from .discovery import AutodiscoverDnsClient, Autodiscovery, SrvRecord, select_srv_record, discover
from .properties import UserSettingName, UserSettingError, UserResponse, GetUserSettingsResponseCollection
from .protocol import AutodiscoverProtocol
from .services import GetUserSettings

__all__ = [
    'AutodiscoverDnsClient', 'Autodiscovery', 'SrvRecord', 'select_srv_record', 'discover',
    'UserSettingName', 'UserSettingError', 'UserResponse', 'GetUserSettingsResponseCollection',
    'AutodiscoverProtocol', 'GetUserSettings',
]
