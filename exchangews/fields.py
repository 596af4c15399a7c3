import datetime
from decimal import Decimal
import logging

from .errors import MalformedResponseError, NaiveDateTimeNotAllowed
from .ewsdatetime import EWSDateTime, EWSDate, UTC
from .util import is_iterable
from .version import Build, EXCHANGE_2010

log = logging.getLogger(__name__)


# Field flags. A field without CAN_SET is read-only on new objects, a field without CAN_UPDATE is read-only on
# existing objects.
CAN_SET = 1
CAN_UPDATE = 2
CAN_DELETE = 4
CAN_FIND = 8
MUST_BE_EXPLICITLY_LOADED = 16
AUTO_INSTANTIATE_ON_READ = 32
REUSE_INSTANCE = 64
DEFAULT_FLAGS = CAN_SET | CAN_UPDATE | CAN_DELETE | CAN_FIND
READ_ONLY_FLAGS = CAN_FIND

# DayOfWeekIndex enum. See https://msdn.microsoft.com/en-us/library/office/aa581350(v=exchg.150).aspx
FIRST = 'First'
SECOND = 'Second'
THIRD = 'Third'
FOURTH = 'Fourth'
LAST = 'Last'
WEEK_NUMBERS = (FIRST, SECOND, THIRD, FOURTH, LAST)

# Month enum
JANUARY = 'January'
FEBRUARY = 'February'
MARCH = 'March'
APRIL = 'April'
MAY = 'May'
JUNE = 'June'
JULY = 'July'
AUGUST = 'August'
SEPTEMBER = 'September'
OCTOBER = 'October'
NOVEMBER = 'November'
DECEMBER = 'December'
MONTHS = (JANUARY, FEBRUARY, MARCH, APRIL, MAY, JUNE, JULY, AUGUST, SEPTEMBER, OCTOBER, NOVEMBER, DECEMBER)

# Weekday enum
MONDAY = 'Monday'
TUESDAY = 'Tuesday'
WEDNESDAY = 'Wednesday'
THURSDAY = 'Thursday'
FRIDAY = 'Friday'
SATURDAY = 'Saturday'
SUNDAY = 'Sunday'
WEEKDAY_NAMES = (SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY)

# Used for weekday recurrences except weekly recurrences. E.g. for "First WeekendDay in March"
DAY = 'Day'
WEEK_DAY = 'Weekday'  # Non-weekend day
WEEKEND_DAY = 'WeekendDay'
EXTRA_WEEKDAY_OPTIONS = (DAY, WEEK_DAY, WEEKEND_DAY)

# DaysOfWeek enum: See https://msdn.microsoft.com/en-us/library/office/ee332417(v=exchg.150).aspx
WEEKDAYS = WEEKDAY_NAMES + EXTRA_WEEKDAY_OPTIONS

IMPORTANCE_CHOICES = ('Low', 'Normal', 'High')
SENSITIVITY_CHOICES = ('Normal', 'Personal', 'Private', 'Confidential')
LEGACY_FREE_BUSY_CHOICES = ('Free', 'Tentative', 'Busy', 'OOF', 'WorkingElsewhere', 'NoData')
TASK_STATUS_CHOICES = ('NotStarted', 'InProgress', 'Completed', 'WaitingOnOthers', 'Deferred')
RESPONSE_TYPE_CHOICES = ('Unknown', 'Organizer', 'Tentative', 'Accept', 'Decline', 'NoResponseReceived')
ROUTING_TYPE_CHOICES = ('SMTP', 'EX')
MAILBOX_TYPE_CHOICES = ('Unknown', 'OneOff', 'Mailbox', 'PublicDL', 'PrivateDL', 'Contact', 'PublicFolder',
                        'GroupMailbox', 'ImplicitContact', 'User')

# Unified messaging enums
CONNECTING = 'Connecting'
DISCONNECTED = 'Disconnected'
PHONE_CALL_STATES = ('Idle', CONNECTING, 'Alerted', 'Connected', DISCONNECTED, 'Incoming', 'Transferring',
                     'Forwarding')
CONNECTION_FAILURE_CAUSES = ('None', 'UserBusy', 'NoAnswer', 'Unavailable', 'Other')


class Field:
    """
    Describes one property of a service object or complex property: its Python name, the FieldURI used when
    updating it, the XML element name, the value type and the server version that introduced it.
    """
    value_cls = None
    is_complex = False
    is_nullable = True
    is_list = False

    def __init__(self, name, field_uri=None, element_name=None, flags=DEFAULT_FLAGS, is_required=False,
                 is_read_only=False, is_attribute=False, default=None, supported_from=None, namespace='t',
                 is_nullable=None):
        self.name = name
        self.field_uri = field_uri
        if element_name is None:
            if field_uri is None:
                raise ValueError("Field '%s' needs an 'element_name' or a 'field_uri'" % name)
            # Valid FieldURI values: https://msdn.microsoft.com/en-us/library/office/aa494315(v=exchg.150).aspx
            element_name = field_uri.split(':')[-1]
        self.element_name = element_name
        if is_read_only:
            flags &= ~(CAN_SET | CAN_UPDATE | CAN_DELETE)
        self.flags = flags
        self.is_required = is_required
        self.is_attribute = is_attribute
        self.default = default
        # The Exchange build when this field was introduced. When talking with versions prior to this version,
        # the field is unavailable.
        if supported_from is not None and not isinstance(supported_from, Build):
            raise ValueError("'supported_from' %r must be a Build instance" % supported_from)
        self.supported_from = supported_from
        self.namespace = namespace
        if is_nullable is not None:
            self.is_nullable = is_nullable

    @property
    def is_read_only(self):
        return not self.flags & CAN_SET

    def has_flag(self, flag, version=None):
        return bool(self.flags & flag)

    def supports_version(self, version):
        # 'version' is a Version instance, for convenience by callers
        if not version:
            return True
        return version.supports(self.supported_from)

    def request_tag(self):
        return '%s:%s' % (self.namespace, self.element_name)

    def create_instance(self):
        # Used for AUTO_INSTANTIATE_ON_READ fields
        return self.value_cls()

    def clean(self, value, version=None):
        if value is None:
            return None
        if self.is_list:
            if not is_iterable(value):
                raise ValueError("Field '%s' value %r must be a list" % (self.name, value))
            for v in value:
                if not isinstance(v, self.value_cls):
                    raise TypeError("Field '%s' value %r must be of type %s" % (self.name, v, self.value_cls))
            return list(value)
        if not isinstance(value, self.value_cls):
            raise TypeError("Field '%s' value %r must be of type %s" % (self.name, value, self.value_cls))
        return value

    def _read_text(self, reader):
        try:
            return reader.read_value(self.value_cls)
        except MalformedResponseError as e:
            log.warning("Cannot convert value on field '%s': %s", self.name, e)
            return None

    def read(self, reader, current=None):
        """Returns the value of the element that 'reader' points to"""
        return self._read_text(reader)

    def read_attribute(self, reader):
        try:
            return reader.read_attribute(self.element_name, self.value_cls)
        except MalformedResponseError as e:
            log.warning("Cannot convert attribute on field '%s': %s", self.name, e)
            return None

    def write(self, writer, value):
        if self.is_attribute:
            writer.attribute(self.element_name, value)
        else:
            writer.element(self.request_tag(), value)

    def write_uri(self, writer):
        if not self.field_uri:
            raise ValueError("Field '%s' has no FieldURI" % self.name)
        writer.element('t:FieldURI', attrs={'FieldURI': self.field_uri})

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % ', '.join('%s=%r' % (f, getattr(self, f)) for f in (
            'name', 'field_uri', 'element_name', 'flags'))


class TextField(Field):
    value_cls = str


class IntegerField(Field):
    value_cls = int
    is_nullable = False

    def __init__(self, *args, **kwargs):
        self.min = kwargs.pop('min', None)
        self.max = kwargs.pop('max', None)
        super().__init__(*args, **kwargs)

    def clean(self, value, version=None):
        value = super().clean(value, version=version)
        if value is not None:
            if self.min is not None and value < self.min:
                raise ValueError("Value %r on field '%s' must be greater than %s" % (value, self.name, self.min))
            if self.max is not None and value > self.max:
                raise ValueError("Value %r on field '%s' must be less than %s" % (value, self.name, self.max))
        return value


class DecimalField(IntegerField):
    value_cls = Decimal


class BooleanField(Field):
    value_cls = bool
    is_nullable = False


class DateField(Field):
    value_cls = EWSDate

    def clean(self, value, version=None):
        if isinstance(value, datetime.date) and not isinstance(value, (EWSDate, datetime.datetime)):
            value = EWSDate.from_date(value)
        return super().clean(value, version=version)


class DateTimeField(Field):
    value_cls = EWSDateTime

    def clean(self, value, version=None):
        if isinstance(value, datetime.datetime):
            if not value.tzinfo:
                raise ValueError("Value %r on field '%s' must be timezone aware" % (value, self.name))
            value = EWSDateTime.from_datetime(value)
        return super().clean(value, version=version)

    def read(self, reader, current=None):
        try:
            return reader.read_value(self.value_cls)
        except MalformedResponseError as e:
            if isinstance(e.__context__, NaiveDateTimeNotAllowed):
                local_dt = e.__context__.args[0]
                log.info('Found naive datetime %s on field %s. Assuming UTC', local_dt, self.name)
                return EWSDateTime.from_datetime(UTC.localize(local_dt))
            log.warning("Cannot convert value on field '%s': %s", self.name, e)
            return None


class TimeDeltaField(Field):
    # Values are communicated as xs:duration
    value_cls = datetime.timedelta


class ChoiceField(TextField):
    def __init__(self, *args, **kwargs):
        self.choices = kwargs.pop('choices')
        super().__init__(*args, **kwargs)

    def clean(self, value, version=None):
        value = super().clean(value, version=version)
        if value is not None and value not in self.choices:
            raise ValueError("Invalid choice %r for field '%s'. Valid choices are: %s" % (
                value, self.name, ', '.join(self.choices)))
        return value

    def read(self, reader, current=None):
        try:
            return reader.read_enum(self.choices)
        except MalformedResponseError as e:
            log.warning("Cannot convert value on field '%s': %s", self.name, e)
            return None


class EnumListField(ChoiceField):
    # A list of choices, communicated as a space-separated string, e.g. 'Monday Wednesday'
    is_list = True

    def clean(self, value, version=None):
        if value is None:
            return None
        if not is_iterable(value):
            raise ValueError("Field '%s' value %r must be a list" % (self.name, value))
        for v in value:
            if v not in self.choices:
                raise ValueError("Invalid choice %r for field '%s'. Valid choices are: %s" % (
                    v, self.name, ', '.join(self.choices)))
        if len(value) > len(set(value)):
            raise ValueError("List entries %r on field '%s' must be unique" % (value, self.name))
        return list(value)

    def read(self, reader, current=None):
        val = reader.read_value()
        if not val:
            return []
        res = val.split()
        for v in res:
            if v not in self.choices:
                log.warning("Unknown value %r on field '%s'", v, self.name)
                return None
        return res

    def write(self, writer, value):
        writer.element(self.request_tag(), ' '.join(value))


class TextListField(TextField):
    # A list of strings, communicated as 't:String' child elements
    is_list = True

    def read(self, reader, current=None):
        return [c.read_value() for c in reader.children() if c.local_name == 'String']

    def write(self, writer, value):
        writer.start(self.request_tag())
        for v in value:
            writer.element('t:String', v)
        writer.end()


class EWSElementField(Field):
    """A field holding a complex property"""
    is_complex = True

    def __init__(self, *args, **kwargs):
        self.value_cls = kwargs.pop('value_cls')
        super().__init__(*args, **kwargs)

    def read(self, reader, current=None):
        if current is not None and self.has_flag(REUSE_INSTANCE):
            value = current
        else:
            value = self.value_cls()
        value.load_from_xml(reader)
        return value

    def write(self, writer, value):
        value.write_to_xml(writer, element_name=self.element_name, namespace=self.namespace)


class ContainedField(EWSElementField):
    """A complex property wrapped in an extra container element, e.g. <t:Organizer><t:Mailbox>...</t:Mailbox>"""

    def __init__(self, *args, **kwargs):
        self.contained_element_name = kwargs.pop('contained_element_name')
        super().__init__(*args, **kwargs)

    def read(self, reader, current=None):
        contained = reader.find(self.contained_element_name)
        if contained is None:
            return None
        return super().read(contained, current=current)

    def write(self, writer, value):
        writer.start(self.request_tag())
        value.write_to_xml(writer, element_name=self.contained_element_name)
        writer.end()


class ComplexCollectionField(EWSElementField):
    """A field holding a ComplexPropertyCollection. The bag tracks additions and removals on the collection."""
    is_list = True

    def __init__(self, *args, **kwargs):
        self.item_cls = kwargs.pop('item_cls')
        from .properties import ComplexPropertyCollection
        kwargs['value_cls'] = ComplexPropertyCollection
        kwargs['flags'] = kwargs.get('flags', DEFAULT_FLAGS) | AUTO_INSTANTIATE_ON_READ
        super().__init__(*args, **kwargs)

    def create_instance(self):
        return self.value_cls(item_cls=self.item_cls)

    def clean(self, value, version=None):
        if value is None or isinstance(value, self.value_cls):
            return value
        if not is_iterable(value, generators_allowed=True):
            raise ValueError("Field '%s' value %r must be a list" % (self.name, value))
        collection = self.create_instance()
        for v in value:
            collection.add(v)
        return collection

    def read(self, reader, current=None):
        collection = self.create_instance()
        collection.load_from_xml(reader)
        return collection

    def write_items(self, writer, items):
        # Used for AppendTo*Field updates. Only the added items are sent.
        writer.start(self.request_tag())
        for item in items:
            item.write_to_xml(writer)
        writer.end()


class IdField(EWSElementField):
    """The ItemId or FolderId of a service object"""

    def __init__(self, *args, **kwargs):
        kwargs['flags'] = kwargs.get('flags', READ_ONLY_FLAGS)
        super().__init__(*args, **kwargs)


class BodyField(EWSElementField):
    def __init__(self, *args, **kwargs):
        from .properties import Body
        kwargs['value_cls'] = Body
        super().__init__(*args, **kwargs)

    def clean(self, value, version=None):
        if isinstance(value, str):
            value = self.value_cls(value=value)
        return super().clean(value, version=version)


class RecurrenceField(EWSElementField):
    def __init__(self, *args, **kwargs):
        from .recurrence import Recurrence
        kwargs['value_cls'] = Recurrence
        super().__init__(*args, **kwargs)


class TimeZoneField(EWSElementField):
    """Holds a full TimeZoneDefinition, e.g. the StartTimeZone of an appointment"""

    def __init__(self, *args, **kwargs):
        from .timezones import TimeZoneDefinition
        kwargs['value_cls'] = TimeZoneDefinition
        kwargs.setdefault('supported_from', EXCHANGE_2010)
        super().__init__(*args, **kwargs)


class EffectiveRightsField(EWSElementField):
    def __init__(self, *args, **kwargs):
        from .properties import EffectiveRights
        kwargs['value_cls'] = EffectiveRights
        kwargs['flags'] = READ_ONLY_FLAGS
        super().__init__(*args, **kwargs)
