import abc
from collections import OrderedDict
import logging
import traceback

from ..errors import EWSWarning, TransportError, SOAPError, ServiceResponseException, ErrorTimeoutExpired, \
    ErrorBatchProcessingStopped, ErrorQuotaExceeded, ErrorCannotDeleteObject, ErrorCreateItemAccessDenied, \
    ErrorFolderNotFound, ErrorNonExistentMailbox, ErrorMailboxStoreUnavailable, ErrorImpersonateUserDenied, \
    ErrorInternalServerError, ErrorInternalServerTransientError, ErrorNoRespondingCASInDestinationSite, \
    ErrorImpersonationFailed, ErrorMailboxMoveInProgress, ErrorAccessDenied, ErrorConnectionFailed, RateLimitError, \
    ErrorServerBusy, ErrorTooManyObjectsOpened, ErrorInvalidLicense, ErrorInvalidSchemaVersionForMailboxVersion, \
    ErrorInvalidServerVersion, ErrorItemNotFound, ErrorADUnavailable, ErrorInvalidChangeKey, ErrorItemSave, \
    ErrorInvalidIdMalformed, ErrorMessageSizeExceeded, UnauthorizedError, ErrorCannotDeleteTaskOccurrence, \
    ErrorMimeContentConversionFailed, ErrorRecurrenceHasNoOccurrence, ErrorNoPublicFolderReplicaAvailable, \
    MalformedResponseError, ErrorExceededConnectionCount, SessionPoolMinSizeReached, ErrorIncorrectSchemaVersion, \
    ErrorInvalidRequest, get_response_error
from ..transport import wrap, extra_headers
from ..util import chunkify, to_xml, post_ratelimited, xml_to_str, get_xml_attr, SOAPNS, TNS, MNS, ParseError
from ..xml_rw import EwsXmlReader, EwsXmlWriter

log = logging.getLogger(__name__)

CHUNK_SIZE = 100  # A default chunk size for all services

# Traversal values for FindItem and FindFolder. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/finditem
SHALLOW = 'Shallow'
DEEP = 'Deep'
SOFT_DELETED = 'SoftDeleted'
ASSOCIATED = 'Associated'


class SoapFaultDetails:
    """The parsed contents of a SOAP Fault element. EWS puts its own error information in the 'detail' element:
    a response code, a message, a position in the request and a dictionary of extra values in MessageXml.

    SOAP Fault: http://www.w3.org/TR/2000/NOTE-SOAP-20000508/#_Toc478383507
    """
    def __init__(self, fault_code=None, fault_string=None, fault_actor=None, response_code=None, message=None,
                 error_code=None, exception_type=None, line_number=None, position_within_line=None,
                 error_details=None):
        self.fault_code = fault_code
        self.fault_string = fault_string
        self.fault_actor = fault_actor
        self.response_code = response_code
        self.message = message
        self.error_code = error_code
        self.exception_type = exception_type
        self.line_number = line_number
        self.position_within_line = position_within_line
        self.error_details = error_details or {}

    @classmethod
    def from_xml(cls, fault):
        """Parses a SOAP Fault element. 'fault' may be an lxml element or an EwsXmlReader"""
        reader = fault if isinstance(fault, EwsXmlReader) else EwsXmlReader(fault)
        details = cls()
        for child in reader.children():
            name = child.local_name
            if name == 'faultcode':
                details.fault_code = child.read_value()
            elif name == 'faultstring':
                details.fault_string = child.read_value()
            elif name == 'faultactor':
                details.fault_actor = child.read_value()
            elif name == 'detail':
                details._parse_detail(child)
        return details

    def _parse_detail(self, reader):
        # The children of 'detail' are in the errors namespace, except MessageXml which moved between namespaces
        # across Exchange versions. Match on the local name only.
        for child in reader.children():
            name = child.local_name
            if name == 'ResponseCode':
                self.response_code = child.read_value()
            elif name == 'Message':
                self.message = child.read_value()
            elif name == 'Line':
                self.line_number = self._read_int(child)
            elif name == 'Position':
                self.position_within_line = self._read_int(child)
            elif name == 'ErrorCode':
                self.error_code = child.read_value()
            elif name == 'ExceptionType':
                self.exception_type = child.read_value()
            elif name == 'MessageXml':
                self._parse_message_xml(child)

    @staticmethod
    def _read_int(reader):
        try:
            return reader.read_value(int)
        except MalformedResponseError:
            return None

    def _parse_message_xml(self, reader):
        for child in reader.children():
            if child.local_name == 'Value':
                self.error_details[child.read_attribute('Name')] = child.read_value()
            elif child.local_name == 'Violation':
                self.error_details['Violation'] = child.read_value()

    def to_exception(self, service_name=None):
        """Returns the exception to raise for this fault"""
        if self.response_code:
            msg = self.message or self.fault_string or ''
            if self.response_code == 'ErrorServerBusy':
                back_off = None
                try:
                    back_off = int(self.error_details['BackOffMilliseconds']) / 1000.0  # Convert to seconds
                except (KeyError, TypeError, ValueError):
                    pass
                return ErrorServerBusy(msg, response_code=self.response_code, fault=self, back_off=back_off)
            if self.response_code == 'ErrorSchemaValidation' and 'Violation' in self.error_details:
                msg = '%s %s' % (msg, self.error_details['Violation'])
            return get_response_error(self.response_code, msg, fault=self)
        return ServiceResponseException('%sSOAP error code: %s string: %s actor: %s' % (
            '%s: ' % service_name if service_name else '', self.fault_code, self.fault_string, self.fault_actor
        ), fault=self)

    def __repr__(self):
        return self.__class__.__name__ + repr((self.fault_code, self.fault_string, self.response_code, self.message))


# Errors that are well understood and are raised without logging a stack trace
KNOWN_ERRORS = (
    ErrorAccessDenied, ErrorADUnavailable, ErrorBatchProcessingStopped, ErrorCannotDeleteObject, ErrorConnectionFailed,
    ErrorCreateItemAccessDenied, ErrorExceededConnectionCount, ErrorFolderNotFound, ErrorImpersonateUserDenied,
    ErrorImpersonationFailed, ErrorInternalServerError, ErrorInternalServerTransientError, ErrorInvalidChangeKey,
    ErrorInvalidLicense, ErrorItemNotFound, ErrorMailboxMoveInProgress, ErrorMailboxStoreUnavailable,
    ErrorNonExistentMailbox, ErrorNoPublicFolderReplicaAvailable, ErrorNoRespondingCASInDestinationSite,
    ErrorQuotaExceeded, ErrorTimeoutExpired, RateLimitError, UnauthorizedError,
)

# The server did not accept the API version we sent. The next version is tried.
API_VERSION_ERRORS = (ErrorInvalidServerVersion, ErrorIncorrectSchemaVersion, ErrorInvalidRequest)

# Seconds to back off when the server is overloaded without telling us for how long
OVERLOAD_BACK_OFF = 300

# Elements in MessageXml that name the field an error is about
FIELD_URI_TAGS = ('FieldURI', 'IndexedFieldURI', 'ExtendedFieldURI', 'ExceptionFieldURI')


class EWSService(metaclass=abc.ABCMeta):
    """Base class for EWS operations. Subclasses define call() and get_payload(). Their signatures differ between
    services, so they are not declared here.

    A request is posted with the API version we believe the server has. If the server rejects that version, the other
    known versions are tried in turn. Version information in the SOAP header of a response is stored for later
    requests.
    """
    SERVICE_NAME = None
    # The element in a response message that holds the returned objects
    element_container_name = None
    # Errors in a response message that are returned as exception instances instead of being raised
    ERRORS_TO_CATCH_IN_RESPONSE = (
        EWSWarning, ErrorCannotDeleteObject, ErrorInvalidChangeKey, ErrorItemNotFound, ErrorItemSave,
        ErrorInvalidIdMalformed, ErrorMessageSizeExceeded, ErrorCannotDeleteTaskOccurrence,
        ErrorMimeContentConversionFailed, ErrorRecurrenceHasNoOccurrence,
    )
    # Warnings that are returned as exception instances
    WARNINGS_TO_CATCH_IN_RESPONSE = ErrorBatchProcessingStopped
    # Warnings that are logged, after which the response is processed as usual
    WARNINGS_TO_IGNORE_IN_RESPONSE = ()
    # Whether the response is read as a stream
    streaming = False

    def __init__(self, protocol, chunk_size=None, timeout=None):
        self.chunk_size = chunk_size or CHUNK_SIZE
        if not isinstance(self.chunk_size, int):
            raise ValueError("'chunk_size' %r must be an integer" % chunk_size)
        if self.chunk_size < 1:
            raise ValueError("'chunk_size' must be a positive number")
        self.protocol = protocol
        # Overrides the protocol timeout
        self.timeout = timeout

    @property
    def _account(self):
        return None

    @property
    def version(self):
        return self.protocol.version

    def _writer(self):
        return EwsXmlWriter(version=self.version)

    def _to_reader(self, elem):
        if isinstance(elem, (bool, Exception)):
            return elem
        return EwsXmlReader(elem, version=self.version)

    def _chunked_get_elements(self, payload_func, items, **kwargs):
        """Sends one request per chunk of 'items' and yields the results of all chunks, in input order"""
        for i, chunk in enumerate(chunkify(items, self.chunk_size), start=1):
            log.debug('%s: Processing chunk %s containing %s items', self.SERVICE_NAME, i, len(chunk))
            for elem in self._get_elements(payload=payload_func(chunk, **kwargs)):
                yield self._to_reader(elem)

    def _get_elements(self, payload):
        """Posts 'payload' and returns a generator over the elements in the response. Requests are repeated for as long
        as the server is busy and the retry policy allows it.
        """
        while True:
            try:
                return self._get_elements_in_response(response=self._get_response_xml(payload=payload))
            except ErrorServerBusy as e:
                self._handle_backoff(e)
            except KNOWN_ERRORS:
                raise
            except Exception:
                # Services may run in threads, where stack traces get lost
                log.warning('EWS %s, account %s: Exception in _get_elements: %s', self.protocol.service_endpoint,
                            self._account, traceback.format_exc(20))
                raise

    def _version_hint(self):
        return self.protocol.version

    def _set_version(self, version):
        self.protocol.config.version = version

    def _api_versions_to_try(self, version_hint):
        from ..version import API_VERSIONS
        return [version_hint.api_version] + [v for v in API_VERSIONS if v != version_hint.api_version]

    def _post(self, payload, api_version):
        """Posts 'payload' wrapped in a SOAP envelope for 'api_version' and returns the response"""
        data = wrap(content=payload, api_version=api_version, account_to_impersonate=self._impersonation(),
                    timezone=self._timezone())
        if self.protocol.credentials is not None:
            data = self.protocol.credentials.sign(data)
        r, session = post_ratelimited(
            protocol=self.protocol,
            session=self.protocol.get_session(),
            url=self.protocol.service_endpoint,
            headers=extra_headers(account=self._account),
            data=data,
            allow_redirects=False,
            stream=self.streaming,
            timeout=self.timeout,
        )
        if self.streaming:
            # The session is released when the stream has been consumed
            r.raw.decode_content = True
            self._streaming_session = session
            self._streaming_response = r
        else:
            self.protocol.release_session(session)
        return r

    def _get_response_xml(self, payload, **parse_opts):
        """Returns the response messages for 'payload'. A request may be served by a server with an older version than
        the one we have seen so far, so the API version is renegotiated on every request.
        """
        account = self._account
        version_hint = self._version_hint()
        api_versions = self._api_versions_to_try(version_hint)
        for api_version in api_versions:
            log.debug('Trying API version %s for account %s', api_version, account)
            r = self._post(payload=payload, api_version=api_version)
            try:
                header, body = self._get_soap_parts(response=r, **parse_opts)
            except ParseError as e:
                raise SOAPError('Bad SOAP response: %s' % e)
            # Error responses still carry useful version info
            if header is not None:
                try:
                    self._update_api_version(version_hint=version_hint, api_version=api_version, header=header)
                except TransportError as te:
                    log.debug('Failed to update version info (%s)', te)
            try:
                return self._get_soap_messages(body=body, **parse_opts)
            except API_VERSION_ERRORS:
                log.debug('API version %s was invalid', api_version)
            except ErrorInvalidSchemaVersionForMailboxVersion:
                if not account:
                    raise ValueError("'account' should not be None")
                log.debug('API version %s was invalid for account %s', api_version, account)
            except ErrorExceededConnectionCount as e:
                # Too many open connections for this user. Retry with a smaller pool.
                try:
                    self.protocol.decrease_poolsize()
                except SessionPoolMinSizeReached:
                    raise e
            except (ErrorTooManyObjectsOpened, ErrorTimeoutExpired) as e:
                raise self._as_server_busy(e)
        if account:
            raise ErrorInvalidSchemaVersionForMailboxVersion('Tried versions %s but all were invalid for account %s' %
                                                             (api_versions, account))
        raise ErrorInvalidServerVersion('Tried versions %s but all were invalid' % api_versions)

    def _as_server_busy(self, e):
        # Both errors are usually caused by too many concurrent or too large requests. There is nothing left to scale
        # back when the pool has a single session.
        if isinstance(e, ErrorTimeoutExpired) and self.protocol.session_pool_size <= 1:
            return e
        return ErrorServerBusy('Reraised from %s(%s)' % (e.__class__.__name__, e), back_off=OVERLOAD_BACK_OFF)

    def _impersonation(self):
        return None

    def _timezone(self):
        return None

    def _handle_backoff(self, e):
        log.debug('Got ErrorServerBusy (back off %s seconds)', e.back_off)
        # The server is busy. Use fewer connections from now on.
        try:
            self.protocol.decrease_poolsize()
        except SessionPoolMinSizeReached:
            pass
        if self.protocol.retry_policy.fail_fast:
            raise e
        # The actual sleep happens before the next request
        self.protocol.retry_policy.back_off(e.back_off)

    def _update_api_version(self, version_hint, api_version, header):
        from ..version import Version
        head_version = Version.from_soap_header(requested_api_version=api_version, header=header)
        if version_hint == head_version:
            return
        log.debug('Found new version (%s -> %s)', version_hint, head_version)
        self._set_version(head_version)

    @classmethod
    def _response_tag(cls):
        return '{%s}%sResponse' % (MNS, cls.SERVICE_NAME)

    @staticmethod
    def _response_messages_tag():
        return '{%s}ResponseMessages' % MNS

    @classmethod
    def _response_message_tag(cls):
        return '{%s}%sResponseMessage' % (MNS, cls.SERVICE_NAME)

    @classmethod
    def _get_soap_parts(cls, response, **parse_opts):
        root = to_xml(response.iter_content())
        header = root.find('{%s}Header' % SOAPNS)
        if header is None:
            # SOAP faults come without a header
            log.debug('No header in XML response')
        body = root.find('{%s}Body' % SOAPNS)
        if body is None:
            raise MalformedResponseError('No Body element in SOAP response')
        return header, body

    @classmethod
    def _get_soap_messages(cls, body, **parse_opts):
        response = body.find(cls._response_tag())
        if response is None:
            fault = body.find('{%s}Fault' % SOAPNS)
            if fault is None:
                raise SOAPError('Unknown SOAP response: %s' % xml_to_str(body))
            cls._raise_soap_errors(fault=fault)
        response_messages = response.find(cls._response_messages_tag())
        if response_messages is None:
            # Some services put the result directly in the response element
            return [response]
        return response_messages.findall(cls._response_message_tag())

    @classmethod
    def _raise_soap_errors(cls, fault):
        raise SoapFaultDetails.from_xml(fault).to_exception(service_name=cls.SERVICE_NAME)

    @staticmethod
    def _find_container(message, name):
        container = message.find(name)
        if container is None:
            raise MalformedResponseError('No %s elements in ResponseMessage (%s)' % (name, xml_to_str(message)))
        return container

    def _get_element_container(self, message, name=None):
        """Returns the container element 'name' of a response message, True if the message has no container, or an
        exception instance for the errors this service returns instead of raising.

        See https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/responsecode
        """
        response_class = message.get('ResponseClass')
        response_code = get_xml_attr(message, '{%s}ResponseCode' % MNS)
        if response_code == 'NoError':
            if response_class != 'Success' or not name:
                return True
            return self._find_container(message, name)
        exc = self._get_exception(
            code=response_code,
            text=get_xml_attr(message, '{%s}MessageText' % MNS),
            msg_xml=message.find('{%s}MessageXml' % MNS),
        )
        if response_class == 'Warning':
            if isinstance(exc, self.WARNINGS_TO_CATCH_IN_RESPONSE):
                return exc
            if isinstance(exc, self.WARNINGS_TO_IGNORE_IN_RESPONSE):
                log.warning(str(exc))
                return self._find_container(message, name)
            raise exc
        if isinstance(exc, self.ERRORS_TO_CATCH_IN_RESPONSE):
            return exc
        raise exc

    @staticmethod
    def _field_uris(msg_xml):
        # Set on e.g. ErrorInvalidPropertyRequest
        for tag_name in FIELD_URI_TAGS:
            elem = msg_xml.find('{%s}%s' % (TNS, tag_name))
            if elem is not None:
                yield xml_to_str(elem)

    @staticmethod
    def _inner_error(msg_xml):
        # ErrorInternalServerError may wrap a more specific error
        values = {elem.get('Name'): elem.text for elem in msg_xml.findall('{%s}Value' % TNS)}
        return values.get('InnerErrorResponseCode'), values.get('InnerErrorMessageText')

    @classmethod
    def _get_exception(cls, code, text, msg_xml):
        if not code:
            return TransportError('Empty ResponseCode in ResponseMessage (MessageText: %s, MessageXml: %s)' % (
                text, msg_xml))
        text = text or ''
        if msg_xml is not None:
            for field_uri in cls._field_uris(msg_xml):
                text += ' (field: %s)' % field_uri
            inner_code, inner_text = cls._inner_error(msg_xml)
            if inner_code:
                return get_response_error(inner_code, '%s (raised from: %s(%r))' % (inner_text, code, text))
        return get_response_error(code, text)

    def _get_elements_in_response(self, response):
        for msg in response:
            container_or_exc = self._get_element_container(message=msg, name=self.element_container_name)
            if isinstance(container_or_exc, (bool, Exception)):
                yield container_or_exc
            else:
                yield from self._get_elements_in_container(container=container_or_exc)

    @staticmethod
    def _get_elements_in_container(container):
        return list(container)


class EWSAccountService(EWSService):

    def __init__(self, *args, **kwargs):
        self.account = kwargs.pop('account')
        kwargs['protocol'] = self.account.protocol
        super().__init__(*args, **kwargs)

    @property
    def _account(self):
        return self.account

    @property
    def version(self):
        return self.account.version

    def _version_hint(self):
        return self.account.version

    def _set_version(self, version):
        self.account.version = version

    def _impersonation(self):
        from ..credentials import IMPERSONATION
        if self.account.access_type == IMPERSONATION:
            return self.account.identity
        return None

    def _timezone(self):
        return self.account.default_timezone


class PagingEWSMixIn(EWSService):
    """Services that return their results in pages. Each request asks for 'page_size' results starting at an offset,
    and each response message carries a RootFolder element telling where the next page starts.
    """
    def _paged_call(self, payload_func, max_items, expected_message_count, **kwargs):
        # One paging state per response message, i.e. per parent folder
        paging_infos = [dict(item_count=0, next_offset=None) for _ in range(expected_message_count)]
        common_next_offset = kwargs['offset']
        total_item_count = 0
        while True:
            log.debug('%s: Getting results at offset %s (max_items %s)', self.SERVICE_NAME, common_next_offset,
                      max_items)
            kwargs['offset'] = common_next_offset
            try:
                response = self._get_response_xml(payload=payload_func(**kwargs))
            except ErrorServerBusy as e:
                self._handle_backoff(e)
                continue
            pages = [self._get_page(message) for message in response]
            if len(pages) != expected_message_count:
                raise MalformedResponseError(
                    "Expected %s messages in 'response', got %s" % (expected_message_count, len(pages))
                )
            for (rootfolder, next_offset), paging_info in zip(pages, paging_infos):
                paging_info['next_offset'] = next_offset
                if isinstance(rootfolder, Exception):
                    yield rootfolder
                    continue
                if rootfolder is not None:
                    container = self._find_container(rootfolder, self.element_container_name)
                    for elem in self._get_elements_in_container(container=container):
                        if max_items and total_item_count >= max_items:
                            break
                        paging_info['item_count'] += 1
                        total_item_count += 1
                        yield self._to_reader(elem)
                if max_items and total_item_count >= max_items:
                    break
                if next_offset and next_offset != paging_info['item_count']:
                    # The collection may change on the server while we page through it
                    log.warning('Unexpected next offset: %s -> %s. Maybe the server-side collection has changed?',
                                paging_info['item_count'], next_offset)
            if max_items and total_item_count >= max_items:
                log.debug("'max_items' count reached")
                break
            next_offsets = {p['next_offset'] for p in paging_infos if p['next_offset'] is not None}
            if not next_offsets:
                break
            # There is only one offset per request. Use the lowest so no results are skipped. This may return
            # duplicates when folders are paged at different rates.
            if len(next_offsets) > 1:
                log.warning('Inconsistent next offsets %s. Using the lowest value', sorted(next_offsets))
            common_next_offset = min(next_offsets)

    def _get_page(self, message):
        """Returns the RootFolder element of a response message (or None if it holds no results) and the offset of
        the next page (or None if this was the last page)
        """
        rootfolder = self._get_element_container(message=message, name='{%s}RootFolder' % MNS)
        if isinstance(rootfolder, Exception):
            return rootfolder, None
        if isinstance(rootfolder, bool):
            return None, None
        is_last_page = rootfolder.get('IncludesLastItemInRange', 'true').lower() in ('true', '1')
        offset = rootfolder.get('IndexedPagingOffset')
        if offset is None and not is_last_page:
            log.debug("Not the last page, but the server sent no page offset. Assuming first page")
            offset = '1'
        next_offset = None if is_last_page else int(offset)
        item_count = int(rootfolder.get('TotalItemsInView', '0'))
        if not item_count:
            if next_offset is not None:
                raise MalformedResponseError("Expected no next offset when 'TotalItemsInView' is 0")
            rootfolder = None
        log.debug('%s: Got page with next offset %s (last page %s)', self.SERVICE_NAME, next_offset, is_last_page)
        return rootfolder, next_offset


def write_indexed_page_view(writer, tag, page_size, offset):
    writer.element(tag, attrs=OrderedDict([
        ('MaxEntriesReturned', page_size),
        ('Offset', offset),
        ('BasePoint', 'Beginning'),
    ]))


def single_result(results, allow_empty=False):
    """Returns the one result of a service call that was given one object. Exceptions are raised."""
    res = list(results)
    if allow_empty and not res:
        return None
    if len(res) != 1:
        raise ValueError('Expected result length 1, but got %s' % res)
    if isinstance(res[0], Exception):
        raise res[0]
    return res[0]


def to_item_id(item, item_cls):
    # Coerce a string, tuple, dict or object to an 'item_cls' instance. Used to create [Parent][Item|Folder]Id
    # instances from a variety of input.
    if isinstance(item, item_cls):
        return item
    if isinstance(item, str):
        return item_cls(item)
    if isinstance(item, (tuple, list)):
        return item_cls(*item)
    if isinstance(item, dict):
        return item_cls(**item)
    return item_cls(item.id, item.changekey)


def write_item_ids(writer, items, tag='m:ItemIds'):
    from ..properties import ItemId
    items = list(items)
    if not items:
        raise ValueError('"items" must not be empty')
    writer.start(tag)
    for item in items:
        log.debug('Collecting item %s', item)
        to_item_id(item, ItemId).write_to_xml(writer)
    writer.end()


def write_folder_ids(writer, folders, tag):
    from ..folders import WELL_KNOWN_FOLDER_NAMES
    from ..properties import FolderId, DistinguishedFolderId
    folders = list(folders)
    if not folders:
        raise ValueError('"folders" must not be empty')
    writer.start(tag)
    for folder in folders:
        log.debug('Collecting folder %s', folder)
        if hasattr(folder, 'get_id'):
            folder = folder.get_id()
        if isinstance(folder, str) and folder in WELL_KNOWN_FOLDER_NAMES:
            folder = DistinguishedFolderId(folder)
        elif not isinstance(folder, (FolderId, DistinguishedFolderId)):
            folder = to_item_id(folder, FolderId)
        folder.write_to_xml(writer)
    writer.end()
