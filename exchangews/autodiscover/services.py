import logging

from ..errors import AutoDiscoverFailed, ServiceValidationException, SOAPError, MalformedResponseError
from ..services.common import SoapFaultDetails
from ..transport import DEFAULT_ENCODING
from ..util import to_xml, post_ratelimited, ns_translation, SOAPNS, ANS, ParseError
from ..xml_rw import EwsXmlReader, EwsXmlWriter
from .properties import GetUserSettingsResponseCollection, NO_ERROR

log = logging.getLogger(__name__)

# The server version we ask the autodiscover service to answer for
REQUESTED_SERVER_VERSION = 'Exchange2013'


class GetUserSettings:
    """Fetches settings for a list of users from the SOAP autodiscover endpoint, e.g.
    https://autodiscover.example.com/autodiscover/autodiscover.svc

    MSDN:
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getusersettings-operation-soap
    """
    SERVICE_NAME = 'GetUserSettings'
    ACTION = '%s/Autodiscover/GetUserSettings' % ANS

    def __init__(self, protocol, requested_server_version=REQUESTED_SERVER_VERSION):
        self.protocol = protocol
        self.requested_server_version = requested_server_version

    @staticmethod
    def validate(smtp_addresses, settings):
        if not settings:
            raise ServiceValidationException('At least one setting must be requested')
        if not smtp_addresses:
            raise ServiceValidationException('At least one SMTP address must be requested')
        for smtp_address in smtp_addresses:
            if not smtp_address:
                raise ServiceValidationException('SMTP addresses must not be empty')

    def call(self, smtp_addresses, settings):
        """
        :param smtp_addresses: the email addresses to get settings for
        :param settings: a list of UserSettingName values
        :return: a GetUserSettingsResponseCollection. Each UserResponse has 'smtp_address' set to the matching
        requested address. The server may return fewer responses than requested when throttled.
        """
        smtp_addresses = list(smtp_addresses or ())
        settings = list(settings or ())
        self.validate(smtp_addresses=smtp_addresses, settings=settings)
        data = self.wrap(self.get_payload(smtp_addresses=smtp_addresses, settings=settings))
        if self.protocol.credentials is not None:
            data = self.protocol.credentials.sign(data)
        session = self.protocol.get_session()
        r, session = post_ratelimited(
            protocol=self.protocol,
            session=session,
            url=self.protocol.service_endpoint,
            headers=None,
            data=data,
            allow_redirects=False,
        )
        self.protocol.release_session(session)
        responses = self._parse_response(r.content)
        if responses.error_code != NO_ERROR:
            raise AutoDiscoverFailed('%s failed with %s: %s' % (
                self.SERVICE_NAME, responses.error_code, responses.error_message))
        self._correlate(responses, smtp_addresses)
        return responses

    @staticmethod
    def _correlate(responses, smtp_addresses):
        # Throttled requests return fewer responses than requested. The remaining addresses get no response.
        if len(responses) != len(smtp_addresses):
            log.warning('Requested settings for %s users but got %s responses', len(smtp_addresses), len(responses))
        for response, smtp_address in zip(responses, smtp_addresses):
            response.smtp_address = smtp_address

    def get_payload(self, smtp_addresses, settings):
        writer = EwsXmlWriter()
        writer.start('a:%sRequestMessage' % self.SERVICE_NAME)
        writer.start('a:Request')
        writer.start('a:Users')
        for smtp_address in smtp_addresses:
            writer.start('a:User')
            writer.element('a:Mailbox', smtp_address)
            writer.end()
        writer.end()
        writer.start('a:RequestedSettings')
        for setting in settings:
            writer.element('a:Setting', setting)
        writer.end()
        writer.end()
        writer.end()
        return writer.root

    def wrap(self, content):
        writer = EwsXmlWriter()
        writer.start('s:Envelope', nsmap=ns_translation)
        writer.start('s:Header')
        writer.element('a:RequestedServerVersion', self.requested_server_version)
        writer.element('wsa:Action', self.ACTION)
        writer.element('wsa:To', self.protocol.service_endpoint)
        writer.end()
        writer.start('s:Body')
        writer.append(content)
        writer.end()
        writer.end()
        return writer.to_bytes(encoding=DEFAULT_ENCODING)

    def _parse_response(self, content):
        try:
            root = to_xml(content).getroot()
        except ParseError as e:
            raise SOAPError('Bad SOAP response: %s' % e)
        body = root.find('{%s}Body' % SOAPNS)
        if body is None:
            raise MalformedResponseError('No Body element in SOAP response')
        fault = body.find('{%s}Fault' % SOAPNS)
        if fault is not None:
            raise SoapFaultDetails.from_xml(fault).to_exception(service_name=self.SERVICE_NAME)
        message = body.find('{%s}%sResponseMessage' % (ANS, self.SERVICE_NAME))
        if message is None:
            raise MalformedResponseError('No %sResponseMessage element in SOAP response' % self.SERVICE_NAME)
        response = message.find('{%s}Response' % ANS)
        if response is None:
            raise MalformedResponseError('No Response element in %sResponseMessage' % self.SERVICE_NAME)
        responses = GetUserSettingsResponseCollection()
        responses.load_from_xml(EwsXmlReader(response))
        return responses
