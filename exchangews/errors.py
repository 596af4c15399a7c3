"""
Stores errors specific to exchangews, and mirrors the error codes that EWS can return.

There are three families of errors:
  * Local errors, raised client-side before any request is sent (ServiceLocalException and subclasses)
  * Transport errors, raised when talking to the server fails (TransportError and subclasses)
  * Response errors, raised when the server returns an EWS error code (ResponseMessageError and subclasses)
"""
from urllib.parse import urlparse


class EWSError(Exception):
    """Global error type within this module."""

    def __init__(self, value):
        super().__init__(value)
        self.value = value

    def __str__(self):
        return str(self.value)


# Warnings
class EWSWarning(EWSError):
    pass


# Local errors. These are always raised before anything is sent to the server.
class ServiceLocalException(EWSError):
    pass


class ServiceValidationException(ServiceLocalException):
    pass


class ServiceVersionException(ServiceLocalException):
    pass


class InvalidOperation(ServiceLocalException):
    pass


class ServiceObjectPropertyException(ServiceLocalException):
    def __init__(self, value, field=None):
        self.field = field
        super().__init__(value)


class PropertyNotLoaded(ServiceObjectPropertyException):
    pass


class PropertyReadOnly(ServiceObjectPropertyException):
    pass


class PropertyCannotBeDeleted(ServiceObjectPropertyException):
    pass


class PropertyCannotBeUpdated(ServiceObjectPropertyException):
    pass


class NaiveDateTimeNotAllowed(ValueError):
    pass


class UnknownTimeZone(EWSError):
    pass


class AmbiguousTimeError(EWSError):
    pass


class NonExistentTimeError(EWSError):
    pass


class SessionPoolMinSizeReached(EWSError):
    pass


# Transport errors
class TransportError(EWSError):
    pass


class MalformedResponseError(TransportError):
    pass


class RateLimitError(TransportError):
    def __init__(self, value, url, status_code, total_wait):
        super().__init__(value)
        self.url = url
        self.status_code = status_code
        self.total_wait = total_wait

    def __str__(self):
        return '%s (gave up after %.3f seconds. URL %s returned status code %s)' % (
            self.value, self.total_wait, self.url, self.status_code)


class SOAPError(TransportError):
    pass


class ServiceResponseException(SOAPError):
    """A SOAP fault that carries no EWS response code we can map to a more specific error. 'fault' holds the parsed
    fault details.
    """
    def __init__(self, value, fault=None):
        super().__init__(value)
        self.fault = fault

    @property
    def details(self):
        if self.fault is None:
            return {}
        return self.fault.error_details


class UnauthorizedError(EWSError):
    pass


class RedirectError(TransportError):
    def __init__(self, url):
        parsed_url = urlparse(url)
        self.url = url
        self.server = parsed_url.hostname.lower()
        self.has_ssl = parsed_url.scheme == 'https'
        super().__init__(str(self))

    def __str__(self):
        return 'We were redirected to %s' % self.url


class RelativeRedirect(TransportError):
    pass


class CASError(EWSError):
    """EWS will sometimes return an error message in an 'X-CasErrorCode' custom HTTP header in an HTTP 500 error code.
    This exception is for those cases. The caller may want to do something with the original response, so store that.
    """
    def __init__(self, cas_error, response):
        self.cas_error = cas_error
        self.response = response
        super().__init__(str(self))

    def __str__(self):
        return 'CAS error: %s' % self.cas_error


class AutoDiscoverError(TransportError):
    pass


class AutoDiscoverFailed(AutoDiscoverError):
    pass


class AutoDiscoverCircularRedirect(AutoDiscoverError):
    pass


class ResponseMessageError(TransportError):
    """Base class for all error codes returned by the server, in a SOAP fault or in a response message.

    'response_code' holds the code as sent by the server, and 'fault' holds the parsed SOAP fault details, if any.
    """
    def __init__(self, value, response_code=None, fault=None):
        super().__init__(value)
        self.response_code = response_code or self.__class__.__name__
        self.fault = fault

    @property
    def details(self):
        if self.fault is None:
            return {}
        return self.fault.error_details


class ErrorServerBusy(ResponseMessageError):
    def __init__(self, *args, **kwargs):
        self.back_off = kwargs.pop('back_off', None)  # Requested back off value in seconds
        super().__init__(*args, **kwargs)


# A subset of the response codes EWS may return. The full list is at
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/responsecode
# Unknown codes are raised as ErrorInternalServerError, with the original code in 'response_code'.
class ErrorAccessDenied(ResponseMessageError):
    pass


class ErrorADUnavailable(ResponseMessageError):
    pass


class ErrorBatchProcessingStopped(ResponseMessageError):
    pass


class ErrorCalendarEndDateIsEarlierThanStartDate(ResponseMessageError):
    pass


class ErrorCalendarInvalidRecurrence(ResponseMessageError):
    pass


class ErrorCalendarInvalidTimeZone(ResponseMessageError):
    pass


class ErrorCannotDeleteObject(ResponseMessageError):
    pass


class ErrorCannotDeleteTaskOccurrence(ResponseMessageError):
    pass


class ErrorChangeKeyRequired(ResponseMessageError):
    pass


class ErrorChangeKeyRequiredForWriteOperations(ResponseMessageError):
    pass


class ErrorConnectionFailed(ResponseMessageError):
    pass


class ErrorCreateItemAccessDenied(ResponseMessageError):
    pass


class ErrorExceededConnectionCount(ResponseMessageError):
    pass


class ErrorExceededSubscriptionCount(ResponseMessageError):
    pass


class ErrorExpiredSubscription(ResponseMessageError):
    pass


class ErrorFolderExists(ResponseMessageError):
    pass


class ErrorFolderNotFound(ResponseMessageError):
    pass


class ErrorFolderSave(ResponseMessageError):
    pass


class ErrorImpersonateUserDenied(ResponseMessageError):
    pass


class ErrorImpersonationFailed(ResponseMessageError):
    pass


class ErrorIncorrectSchemaVersion(ResponseMessageError):
    pass


class ErrorIncorrectUpdatePropertyCount(ResponseMessageError):
    pass


class ErrorInternalServerError(ResponseMessageError):
    pass


class ErrorInternalServerTransientError(ResponseMessageError):
    pass


class ErrorInvalidChangeKey(ResponseMessageError):
    pass


class ErrorInvalidFolderId(ResponseMessageError):
    pass


class ErrorInvalidId(ResponseMessageError):
    pass


class ErrorInvalidIdMalformed(ResponseMessageError):
    pass


class ErrorInvalidLicense(ResponseMessageError):
    pass


class ErrorInvalidPhoneCallId(ResponseMessageError):
    pass


class ErrorInvalidPhoneNumber(ResponseMessageError):
    pass


class ErrorInvalidPropertyDelete(ResponseMessageError):
    pass


class ErrorInvalidPropertyRequest(ResponseMessageError):
    pass


class ErrorInvalidPropertySet(ResponseMessageError):
    pass


class ErrorInvalidPropertyUpdateSentMessage(ResponseMessageError):
    pass


class ErrorInvalidRecipients(ResponseMessageError):
    pass


class ErrorInvalidRequest(ResponseMessageError):
    pass


class ErrorInvalidSchemaVersionForMailboxVersion(ResponseMessageError):
    pass


class ErrorInvalidServerVersion(ResponseMessageError):
    pass


class ErrorInvalidSubscription(ResponseMessageError):
    pass


class ErrorInvalidSubscriptionRequest(ResponseMessageError):
    pass


class ErrorInvalidWatermark(ResponseMessageError):
    pass


class ErrorItemNotFound(ResponseMessageError):
    pass


class ErrorItemSave(ResponseMessageError):
    pass


class ErrorMailboxMoveInProgress(ResponseMessageError):
    pass


class ErrorMailboxStoreUnavailable(ResponseMessageError):
    pass


class ErrorMessageSizeExceeded(ResponseMessageError):
    pass


class ErrorMimeContentConversionFailed(ResponseMessageError):
    pass


class ErrorMissedNotificationEvents(ResponseMessageError):
    pass


class ErrorNameResolutionNoResults(ResponseMessageError):
    pass


class ErrorNonExistentMailbox(ResponseMessageError):
    pass


class ErrorNoPublicFolderReplicaAvailable(ResponseMessageError):
    pass


class ErrorNoRespondingCASInDestinationSite(ResponseMessageError):
    pass


class ErrorObjectTypeChanged(ResponseMessageError):
    pass


class ErrorPhoneNumberNotDialable(ResponseMessageError):
    pass


class ErrorProxyRequestNotAllowed(ResponseMessageError):
    pass


class ErrorQuotaExceeded(ResponseMessageError):
    pass


class ErrorRecurrenceHasNoOccurrence(ResponseMessageError):
    pass


class ErrorSchemaValidation(ResponseMessageError):
    pass


class ErrorSubscriptionAccessDenied(ResponseMessageError):
    pass


class ErrorSubscriptionNotFound(ResponseMessageError):
    pass


class ErrorSubscriptionUnsubscribed(ResponseMessageError):
    pass


class ErrorTimeoutExpired(ResponseMessageError):
    pass


class ErrorTooManyObjectsOpened(ResponseMessageError):
    pass


class ErrorUnifiedMessagingDialPlanNotFound(ResponseMessageError):
    pass


class ErrorUnifiedMessagingRequestFailed(ResponseMessageError):
    pass


class ErrorUnifiedMessagingServerNotFound(ResponseMessageError):
    pass


class ErrorUpdatePropertyMismatch(ResponseMessageError):
    pass


def get_response_error(code, text, fault=None):
    """Returns an exception instance matching the EWS response code. Unknown codes are normalized to
    ErrorInternalServerError, keeping the original code in 'response_code'.
    """
    error_cls = globals().get(code)
    if isinstance(error_cls, type) and issubclass(error_cls, ResponseMessageError):
        return error_cls(text, response_code=code, fault=fault)
    return ErrorInternalServerError('%s (unknown response code: %s)' % (text, code), response_code=code, fault=fault)
