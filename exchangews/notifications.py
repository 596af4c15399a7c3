"""
Streaming notifications. A StreamingSubscription is created on the server with SubscribeToStreamingNotifications. A
StreamingSubscriptionConnection holds a set of subscriptions and keeps one hanging GetStreamingEvents request open for
all of them, dispatching notifications and errors to observers.

Usage:

    subscription = StreamingSubscription.subscribe(account, folders=['inbox'], event_types=[NEW_MAIL_EVENT])
    with StreamingSubscriptionConnection(account, lifetime=10) as connection:
        connection.add_subscription(subscription)
        connection.on_notification_event.append(lambda conn, args: print(args.events))
        connection.open()
        ...

MSDN:
https://docs.microsoft.com/en-us/exchange/client-developer/exchange-web-services/notification-subscriptions-mailbox-events-and-ews-in-exchange
"""
from collections import OrderedDict
import logging
import threading
import traceback

from .errors import InvalidOperation, ErrorMissedNotificationEvents
from .events import EVENT_TYPES
from .services import SubscribeToStreamingNotifications, Unsubscribe, GetStreamingEvents

log = logging.getLogger(__name__)

# Connection states
CLOSED = 'Closed'
OPENING = 'Opening'
OPEN = 'Open'
FAULTED = 'Faulted'
STATES = (CLOSED, OPENING, OPEN, FAULTED)

# Limits for the lifetime of a hanging request, in minutes
MIN_LIFETIME = 1
MAX_LIFETIME = 30


class StreamingSubscription:
    """A subscription that exists on the server. 'watermark' is the bookmark of the last event delivered for it."""

    def __init__(self, account, id, watermark=None):
        self.account = account
        self.id = id
        self.watermark = watermark

    @classmethod
    def subscribe(cls, account, folders=None, event_types=EVENT_TYPES):
        """Creates a subscription on 'folders', or on all folders of the mailbox if 'folders' is None"""
        subscription_id = SubscribeToStreamingNotifications(account=account).call(
            folders=folders, event_types=event_types,
        )
        log.debug('Created streaming subscription %s', subscription_id)
        return cls(account=account, id=subscription_id)

    def unsubscribe(self):
        log.debug('Removing streaming subscription %s', self.id)
        Unsubscribe(account=self.account).call(subscription_id=self.id)

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r)' % (self.id, self.watermark)


class NotificationEventArgs:
    """The events delivered for one subscription in one batch"""

    def __init__(self, subscription, events):
        self.subscription = subscription
        self.events = events

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r)' % (self.subscription, self.events)


class SubscriptionErrorEventArgs:
    """An error concerning one subscription. 'subscription' is None for errors that concern the whole connection, and
    'exception' is None when a connection was closed without errors.
    """

    def __init__(self, subscription, exception):
        self.subscription = subscription
        self.exception = exception

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r)' % (self.subscription, self.exception)


class HangingServiceRequest:
    """Runs one GetStreamingEvents request on a daemon thread. Each response is passed to 'on_response'. When the
    request ends, for whatever reason, 'on_disconnect' is called exactly once with the request and the exception that
    ended it. The exception is None when the request was ended by disconnect() or closed by the server.
    """

    def __init__(self, account, subscription_ids, lifetime, on_response, on_disconnect, on_connected=None):
        self.subscription_ids = list(subscription_ids)
        self.lifetime = lifetime
        self.on_response = on_response
        self.on_disconnect = on_disconnect
        self.on_connected = on_connected
        self.service = GetStreamingEvents(account=account)
        self._disconnect_requested = False
        self._disconnected = threading.Event()
        self.thread = threading.Thread(target=self._run, name='ews-streaming-%s' % id(self), daemon=True)

    def start(self):
        self.thread.start()

    def disconnect(self):
        """Asks the request to end. The disconnect callback follows asynchronously."""
        log.debug('Disconnect requested for streaming request on %s subscriptions', len(self.subscription_ids))
        self._disconnect_requested = True
        self.service.stop()

    def join(self, timeout=None):
        """Waits until the disconnect callback has run. Returns False on timeout."""
        return self._disconnected.wait(timeout)

    @property
    def is_disconnected(self):
        return self._disconnected.is_set()

    def _run(self):
        exception = None
        responses = None
        try:
            responses = self.service.call(subscription_ids=self.subscription_ids, connection_timeout=self.lifetime)
            if self.on_connected is not None:
                self.on_connected(self)
            for response in responses:
                if self._disconnect_requested:
                    break
                self.on_response(response)
                if response.connection_status == GetStreamingEvents.CLOSED:
                    log.debug('Server closed the streaming connection')
                    break
        except Exception as e:
            if self._disconnect_requested:
                # Closing the HTTP response makes the reading thread fail
                log.debug('Streaming request ended after disconnect: %s', e)
            else:
                log.warning('Streaming request failed: %s', traceback.format_exc(20))
                exception = e
        finally:
            if responses is not None:
                responses.close()
        self._fire_disconnect(exception)

    def _fire_disconnect(self, exception):
        try:
            self.on_disconnect(self, exception)
        except Exception:
            log.warning('Disconnect callback failed: %s', traceback.format_exc(20))
        finally:
            self._disconnected.set()


class StreamingSubscriptionConnection:
    """Keeps a hanging request open for a set of streaming subscriptions.

    The connection starts CLOSED. open() moves it to OPENING, and to OPEN once the server has accepted the request.
    When the request ends, the connection is CLOSED if it ended gracefully and FAULTED otherwise. Subscriptions can
    only be added or removed while the connection is not open.

    Observers are plain lists of callables that are called with the connection and an event args object:
    * on_notification_event: NotificationEventArgs, for each non-empty batch of events
    * on_subscription_error: SubscriptionErrorEventArgs, for each subscription the server reports an error for
    * on_disconnect: SubscriptionErrorEventArgs with subscription=None, once each time the request ends

    Observers are called from the thread that reads the stream. Exceptions raised by observers are logged.
    """
    REQUEST_CLASS = HangingServiceRequest

    def __init__(self, account, lifetime):
        if not isinstance(lifetime, int):
            raise ValueError("'lifetime' %r must be an integer" % lifetime)
        if not MIN_LIFETIME <= lifetime <= MAX_LIFETIME:
            raise ValueError("'lifetime' %s must be in range %s-%s" % (lifetime, MIN_LIFETIME, MAX_LIFETIME))
        self.account = account
        self.lifetime = lifetime
        self.on_notification_event = []
        self.on_subscription_error = []
        self.on_disconnect = []
        self._subscriptions = OrderedDict()
        self._lock = threading.Lock()
        self._state = CLOSED
        self._request = None
        self._disposed = False

    @property
    def state(self):
        return self._state

    @property
    def is_open(self):
        return self._state == OPEN

    @property
    def current_subscriptions(self):
        with self._lock:
            return list(self._subscriptions.values())

    def _throw_if_disposed(self):
        if self._disposed:
            raise InvalidOperation('This connection has been disposed')

    def _throw_if_open(self):
        if self._state in (OPENING, OPEN):
            raise InvalidOperation('Subscriptions cannot be changed while the connection is open')

    def add_subscription(self, subscription):
        self._throw_if_disposed()
        with self._lock:
            self._throw_if_open()
            if subscription.id in self._subscriptions:
                log.debug('Subscription %s is already on this connection', subscription.id)
                return
            self._subscriptions[subscription.id] = subscription

    def remove_subscription(self, subscription):
        self._throw_if_disposed()
        with self._lock:
            self._throw_if_open()
            self._subscriptions.pop(subscription.id, None)

    def open(self):
        """Starts the hanging request. Transport failures are reported to the on_disconnect observers."""
        self._throw_if_disposed()
        with self._lock:
            if self._state in (OPENING, OPEN):
                raise InvalidOperation('The connection is already open')
            if not self._subscriptions:
                raise InvalidOperation('At least one subscription must be added before opening the connection')
            self._state = OPENING
            self._request = self.REQUEST_CLASS(
                account=self.account,
                subscription_ids=list(self._subscriptions),
                lifetime=self.lifetime,
                on_response=self._handle_response,
                on_disconnect=self._handle_disconnect,
                on_connected=self._handle_connected,
            )
            request = self._request
        log.debug('Opening streaming connection for %s subscriptions', len(request.subscription_ids))
        request.start()

    def close(self, timeout=None):
        """Cancels the hanging request and waits for the disconnect to be reported, unless called from an observer"""
        self._throw_if_disposed()
        with self._lock:
            if self._state not in (OPENING, OPEN):
                raise InvalidOperation('The connection is not open')
            request = self._request
        request.disconnect()
        if threading.current_thread() is not request.thread:
            request.join(timeout)

    def dispose(self, timeout=None):
        if self._disposed:
            return
        with self._lock:
            request = self._request
        if request is not None:
            request.disconnect()
            if threading.current_thread() is not request.thread:
                request.join(timeout)
        with self._lock:
            self._subscriptions.clear()
            self._disposed = True

    def __enter__(self):
        return self

    def __exit__(self, *args, **kwargs):
        self.dispose()

    def _fire(self, observers, args):
        # A failing observer must not keep the others from being called, or end the request
        for observer in list(observers):
            try:
                observer(self, args)
            except Exception:
                log.warning('Observer %r failed on %r: %s', observer, args, traceback.format_exc(20))

    def _handle_connected(self, request):
        with self._lock:
            if request is self._request and self._state == OPENING:
                self._state = OPEN
        log.debug('Streaming connection is open')

    def _handle_response(self, response):
        if response.error is not None:
            if not response.error_subscription_ids:
                # The error concerns the whole request. It ends the request and is reported to on_disconnect.
                raise response.error
            self._handle_subscription_errors(response.error, response.error_subscription_ids)
        for group in response.notifications:
            with self._lock:
                subscription = self._subscriptions.get(group.subscription_id)
            if subscription is None:
                # The subscription was removed from this connection while the server was still sending events for it
                log.debug('Dropping notification for unknown subscription %s', group.subscription_id)
                continue
            if not group.events:
                continue
            watermark = group.events[-1].watermark
            if watermark:
                subscription.watermark = watermark
            self._fire(self.on_notification_event, NotificationEventArgs(subscription=subscription,
                                                                         events=group.events))

    def _handle_subscription_errors(self, error, subscription_ids):
        for subscription_id in subscription_ids:
            with self._lock:
                subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                log.debug('Dropping error %s for unknown subscription %s', error, subscription_id)
                continue
            if not isinstance(error, ErrorMissedNotificationEvents):
                # The server will not deliver more events for this subscription
                with self._lock:
                    self._subscriptions.pop(subscription_id, None)
            self._fire(self.on_subscription_error, SubscriptionErrorEventArgs(subscription=subscription,
                                                                              exception=error))

    def _handle_disconnect(self, request, exception):
        with self._lock:
            if request is not self._request:
                log.debug('Ignoring disconnect from a stale request')
                return
            self._request = None
            self._state = CLOSED if exception is None else FAULTED
        log.debug('Streaming connection disconnected (%s)', exception)
        self._fire(self.on_disconnect, SubscriptionErrorEventArgs(subscription=None, exception=exception))

    def __repr__(self):
        return self.__class__.__name__ + '(%r, %r, %r)' % (self.lifetime, self._state, list(self._subscriptions))
