"""
The response model of the SOAP autodiscover GetUserSettings operation.

MSDN:
https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getusersettingsresponsemessage-soap
"""
import logging

from ..fields import TextField
from ..properties import ComplexProperty
from ..util import ANS

log = logging.getLogger(__name__)

# ErrorCode values. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/errorcode-soap
NO_ERROR = 'NoError'
REDIRECT_ADDRESS = 'RedirectAddress'
REDIRECT_URL = 'RedirectUrl'
INVALID_USER = 'InvalidUser'
INVALID_REQUEST = 'InvalidRequest'
INVALID_SETTING = 'InvalidSetting'
SETTING_IS_NOT_AVAILABLE = 'SettingIsNotAvailable'
SERVER_BUSY = 'ServerBusy'
INVALID_DOMAIN = 'InvalidDomain'
NOT_FEDERATED = 'NotFederated'
INTERNAL_SERVER_ERROR = 'InternalServerError'
ERROR_CODES = (NO_ERROR, REDIRECT_ADDRESS, REDIRECT_URL, INVALID_USER, INVALID_REQUEST, INVALID_SETTING,
               SETTING_IS_NOT_AVAILABLE, SERVER_BUSY, INVALID_DOMAIN, NOT_FEDERATED, INTERNAL_SERVER_ERROR)


class UserSettingName:
    """The names of the settings that can be requested. See
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/setting-soap
    """
    USER_DISPLAY_NAME = 'UserDisplayName'
    USER_DN = 'UserDN'
    USER_DEPLOYMENT_ID = 'UserDeploymentId'
    INTERNAL_MAILBOX_SERVER = 'InternalMailboxServer'
    INTERNAL_RPC_CLIENT_SERVER = 'InternalRpcClientServer'
    INTERNAL_MAILBOX_SERVER_DN = 'InternalMailboxServerDN'
    INTERNAL_WEB_CLIENT_URLS = 'InternalWebClientUrls'
    INTERNAL_ECP_URL = 'InternalEcpUrl'
    INTERNAL_EWS_URL = 'InternalEwsUrl'
    INTERNAL_OAB_URL = 'InternalOABUrl'
    INTERNAL_UM_URL = 'InternalUMUrl'
    MAILBOX_DN = 'MailboxDN'
    PUBLIC_FOLDER_SERVER = 'PublicFolderServer'
    ACTIVE_DIRECTORY_SERVER = 'ActiveDirectoryServer'
    EXTERNAL_MAILBOX_SERVER = 'ExternalMailboxServer'
    EXTERNAL_MAILBOX_SERVER_REQUIRES_SSL = 'ExternalMailboxServerRequiresSSL'
    EXTERNAL_WEB_CLIENT_URLS = 'ExternalWebClientUrls'
    EXTERNAL_ECP_URL = 'ExternalEcpUrl'
    EXTERNAL_EWS_URL = 'ExternalEwsUrl'
    EXTERNAL_OAB_URL = 'ExternalOABUrl'
    EXTERNAL_UM_URL = 'ExternalUMUrl'
    CAS_VERSION = 'CasVersion'
    EWS_SUPPORTED_SCHEMAS = 'EwsSupportedSchemas'
    ALTERNATE_MAILBOXES = 'AlternateMailboxes'
    AUTODISCOVER_SMTP_ADDRESS = 'AutoDiscoverSMTPAddress'
    EXTERNAL_EWS_VERSION = 'ExternalEwsVersion'
    MOBILE_MAILBOX_POLICY = 'MobileMailboxPolicy'
    GROUPING_INFORMATION = 'GroupingInformation'

    ALL = (
        USER_DISPLAY_NAME, USER_DN, USER_DEPLOYMENT_ID, INTERNAL_MAILBOX_SERVER, INTERNAL_RPC_CLIENT_SERVER,
        INTERNAL_MAILBOX_SERVER_DN, INTERNAL_WEB_CLIENT_URLS, INTERNAL_ECP_URL, INTERNAL_EWS_URL, INTERNAL_OAB_URL,
        INTERNAL_UM_URL, MAILBOX_DN, PUBLIC_FOLDER_SERVER, ACTIVE_DIRECTORY_SERVER, EXTERNAL_MAILBOX_SERVER,
        EXTERNAL_MAILBOX_SERVER_REQUIRES_SSL, EXTERNAL_WEB_CLIENT_URLS, EXTERNAL_ECP_URL, EXTERNAL_EWS_URL,
        EXTERNAL_OAB_URL, EXTERNAL_UM_URL, CAS_VERSION, EWS_SUPPORTED_SCHEMAS, ALTERNATE_MAILBOXES,
        AUTODISCOVER_SMTP_ADDRESS, EXTERNAL_EWS_VERSION, MOBILE_MAILBOX_POLICY, GROUPING_INFORMATION,
    )


class AutodiscoverProperty(ComplexProperty):
    NAMESPACE = 'a'


class UserSettingError(AutodiscoverProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/usersettingerror-soap"""
    ELEMENT_NAME = 'UserSettingError'

    FIELDS = (
        TextField('error_code', field_uri='ErrorCode'),
        TextField('error_message', field_uri='ErrorMessage'),
        TextField('setting_name', field_uri='SettingName'),
    )


class UserResponse(AutodiscoverProperty):
    """The settings of one user. 'smtp_address' is not part of the response. It is filled in by GetUserSettings from
    the list of requested addresses.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/userresponse-soap
    """
    ELEMENT_NAME = 'UserResponse'
    STRING_SETTING = 'StringSetting'

    FIELDS = (
        TextField('error_code', field_uri='ErrorCode', default=NO_ERROR),
        TextField('error_message', field_uri='ErrorMessage'),
        TextField('redirect_target', field_uri='RedirectTarget'),
    )

    def __init__(self, settings=None, setting_errors=None, smtp_address=None, **kwargs):
        self._set_quietly('settings', dict(settings or {}))
        self._set_quietly('setting_errors', list(setting_errors or ()))
        self._set_quietly('smtp_address', smtp_address)
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'UserSettings':
            for child in reader.children():
                self._read_setting(child)
            return True
        if reader.local_name == 'UserSettingErrors':
            for child in reader.children():
                error = UserSettingError()
                error.load_from_xml(child)
                self.setting_errors.append(error)
            return True
        return super().try_read_element_from_xml(reader)

    def _read_setting(self, reader):
        name = reader.read_element_value('Name', namespace=ANS)
        if name is None:
            log.debug('Skipping user setting without a name')
            return
        setting_type = reader.read_xsi_type()
        if setting_type in (None, self.STRING_SETTING):
            self.settings[name] = reader.read_element_value('Value', namespace=ANS)
        else:
            # Collection settings are kept as readers. Callers that need them know their structure.
            log.debug('Setting %s has type %s. Keeping the raw element', name, setting_type)
            self.settings[name] = reader

    @property
    def has_error(self):
        return self.error_code not in (None, NO_ERROR)

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r, %r)' % (self.smtp_address, self.error_code, self.settings)


class GetUserSettingsResponseCollection(AutodiscoverProperty):
    """The top-level <Response> element. ErrorCode and ErrorMessage on this level concern the request as a whole.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/response-soap
    """
    ELEMENT_NAME = 'Response'

    FIELDS = (
        TextField('error_code', field_uri='ErrorCode', default=NO_ERROR),
        TextField('error_message', field_uri='ErrorMessage'),
    )

    def __init__(self, responses=None, **kwargs):
        self._set_quietly('responses', list(responses or ()))
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'UserResponses':
            for child in reader.children():
                if child.local_name != UserResponse.ELEMENT_NAME:
                    continue
                response = UserResponse()
                response.load_from_xml(child)
                self.responses.append(response)
            return True
        return super().try_read_element_from_xml(reader)

    def __len__(self):
        return len(self.responses)

    def __iter__(self):
        return iter(self.responses)

    def __getitem__(self, index):
        return self.responses[index]
