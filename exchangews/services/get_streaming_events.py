import logging

from ..util import MNS, DocumentYielder, DummyResponse, get_xml_attr, get_xml_attrs
from .common import EWSAccountService

log = logging.getLogger(__name__)


class StreamingEventsResponse:
    """One response message delivered on a streaming connection. It either holds notifications, or an error that
    concerns the subscriptions in 'error_subscription_ids', or all subscriptions if that list is empty.
    """
    def __init__(self, response_class, notifications=None, error=None, error_subscription_ids=None,
                 connection_status=None):
        self.response_class = response_class
        self.notifications = notifications or []
        self.error = error
        self.error_subscription_ids = error_subscription_ids or []
        self.connection_status = connection_status

    @property
    def is_error(self):
        return self.response_class == 'Error'

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r, %r, %r)' % (
            self.response_class, self.notifications, self.error, self.error_subscription_ids)


class GetStreamingEvents(EWSAccountService):
    """A hanging request. The server keeps the HTTP response open and sends one SOAP document per batch of
    notifications, plus regular heartbeats, until the connection timeout expires.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getstreamingevents-operation
    """
    SERVICE_NAME = 'GetStreamingEvents'
    element_container_name = '{%s}Notifications' % MNS
    streaming = True

    # Connection status values
    OK = 'OK'
    CLOSED = 'Closed'

    def __init__(self, *args, **kwargs):
        # These values are set each time call() is consumed
        self.connection_status = None
        self._streaming_session = None
        self._streaming_response = None
        super().__init__(*args, **kwargs)

    def call(self, subscription_ids, connection_timeout):
        """Returns a generator of StreamingEventsResponse objects. 'connection_timeout' is in minutes."""
        if not isinstance(connection_timeout, int):
            raise ValueError("'connection_timeout' %r must be an integer" % connection_timeout)
        if connection_timeout < 1:
            raise ValueError("'connection_timeout' %s must be a positive integer" % connection_timeout)
        # Add 60 seconds to the timeout, to allow us to always get the final message containing ConnectionStatus=Closed
        self.timeout = connection_timeout * 60 + 60
        return self._get_elements(payload=self.get_payload(
            subscription_ids=subscription_ids,
            connection_timeout=connection_timeout,
        ))

    def stop(self):
        """Closes the HTTP response. A thread reading from the stream will get an exception."""
        r = self._streaming_response
        if r is not None:
            log.debug('Closing streaming response')
            r.close()

    @classmethod
    def _get_soap_parts(cls, response, **parse_opts):
        # Pass the response unaltered. We want to use our custom document yielder
        return None, response

    def _get_soap_messages(self, body, **parse_opts):
        # 'body' is actually the raw response passed on by '_get_soap_parts'. We want to continuously read the content,
        # looking for complete XML documents. When we have a full document, we parse it as if it was a normal
        # XML response.
        r = body
        try:
            for i, doc in enumerate(DocumentYielder(r.iter_content()), start=1):
                log.debug('Response XML (docs counter: %(i)s): %(xml_response)s', dict(i=i, xml_response=doc))
                response = DummyResponse(url=None, headers=None, request_headers=None, content=doc)
                _, body = super()._get_soap_parts(response=response, **parse_opts)
                for message in super()._get_soap_messages(body=body, **parse_opts):
                    yield message
                if self.connection_status == self.CLOSED:
                    # Don't wait for the TCP connection to timeout
                    break
        finally:
            r.close()  # Release memory
            if self._streaming_session is not None:
                self.protocol.release_session(self._streaming_session)
                self._streaming_session = None

    def _get_elements_in_response(self, response):
        for message in response:
            yield self._parse_message(message)

    def _parse_message(self, message):
        from ..events import NotificationGroup
        response_class = message.get('ResponseClass')
        response_code = get_xml_attr(message, '{%s}ResponseCode' % MNS)
        self.connection_status = get_xml_attr(message, '{%s}ConnectionStatus' % MNS)  # Either 'OK' or 'Closed'
        log.debug('Connection status is: %s', self.connection_status)
        error_ids_elem = message.find('{%s}ErrorSubscriptionIds' % MNS)
        error_ids = [] if error_ids_elem is None else get_xml_attrs(error_ids_elem, '{%s}SubscriptionId' % MNS)
        error = None
        if response_class != 'Success' or response_code != 'NoError':
            error = self._get_exception(
                code=response_code,
                text=get_xml_attr(message, '{%s}MessageText' % MNS),
                msg_xml=message.find('{%s}MessageXml' % MNS),
            )
        notifications = []
        container = message.find(self.element_container_name)
        if container is not None:
            for elem in container.findall('{%s}Notification' % MNS):
                notifications.append(NotificationGroup.from_xml(self._to_reader(elem)))
        return StreamingEventsResponse(
            response_class=response_class,
            notifications=notifications,
            error=error,
            error_subscription_ids=error_ids,
            connection_status=self.connection_status,
        )

    def get_payload(self, subscription_ids, connection_timeout):
        subscription_ids = list(subscription_ids)
        if not subscription_ids:
            raise ValueError("'subscription_ids' must not be empty")
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        writer.start('m:SubscriptionIds')
        for subscription_id in subscription_ids:
            writer.element('t:SubscriptionId', subscription_id)
        writer.end()
        writer.element('m:ConnectionTimeout', connection_timeout)
        writer.end()
        return writer.root
