"""
Full time zone definitions, as used in the StartTimeZone and EndTimeZone of calendar items from Exchange 2010 onwards.

A definition consists of periods (a bias and a name), groups of recurring transitions between periods (typically one
transition to standard time and one to daylight time), and a list of transitions to groups saying which group applies
from when. Transitions point to their target by id. The ids are resolved against the definition after parsing.
"""
import datetime
import logging
import zlib

from .errors import ServiceValidationException, MalformedResponseError, UnknownTimeZone
from .ewsdatetime import EWSTimeZone
from .fields import Field, TextField, IntegerField, ChoiceField, TimeDeltaField, EWSElementField, WEEKDAY_NAMES
from .properties import ComplexProperty, values_are_same
from .version import EXCHANGE_2010

log = logging.getLogger(__name__)

PERIOD_TARGET = 'Period'
GROUP_TARGET = 'Group'
NO_ID_PREFIX = 'NoId_'


class TransitionDateTimeField(Field):
    # Transition dates are naive datetimes, e.g. '2007-01-01T00:00:00'
    value_cls = datetime.datetime
    FORMAT = '%Y-%m-%dT%H:%M:%S'

    def read(self, reader, current=None):
        val = reader.read_value()
        if val is None:
            return None
        try:
            return datetime.datetime.strptime(val[:19], self.FORMAT)
        except ValueError as e:
            raise MalformedResponseError('Invalid transition date %r: %s' % (val, e))

    def write(self, writer, value):
        writer.element(self.request_tag(), value.strftime(self.FORMAT))


class TimeZonePeriod(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/period"""
    ELEMENT_NAME = 'Period'
    STANDARD_ID = 'Std'
    DAYLIGHT_ID = 'Dlt'

    FIELDS = (
        # Offset to UTC. Positive for time zones behind UTC, e.g. 'PT5H' for US Eastern standard time.
        TimeDeltaField('bias', field_uri='Bias', is_attribute=True, is_required=True),
        TextField('name', field_uri='Name', is_attribute=True),
        TextField('id', field_uri='Id', is_attribute=True, is_required=True),
    )

    @property
    def is_standard_period(self):
        return self.name == 'Standard'


class TransitionTarget(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/to"""
    ELEMENT_NAME = 'To'

    FIELDS = (
        ChoiceField('kind', field_uri='Kind', is_attribute=True, choices=(PERIOD_TARGET, GROUP_TARGET),
                    is_required=True),
    )

    def __init__(self, value=None, **kwargs):
        self._set_quietly('value', value)
        super().__init__(**kwargs)

    def read_text_value_from_xml(self, reader):
        self._set_quietly('value', reader.read_value())

    def write_elements_to_xml(self, writer):
        writer.current.text = self.value

    def is_same(self, other):
        return super().is_same(other) and self.value == other.value


class TimeZoneTransition(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/transition"""
    ELEMENT_NAME = 'Transition'

    FIELDS = (
        EWSElementField('to', field_uri='To', value_cls=TransitionTarget, is_required=True),
    )

    def __init__(self, **kwargs):
        # Allow 'period' or 'group' shortcuts, e.g. TimeZoneTransition(group='0')
        period = kwargs.pop('period', None)
        group = kwargs.pop('group', None)
        if period is not None:
            kwargs['to'] = TransitionTarget(kind=PERIOD_TARGET, value=period)
        elif group is not None:
            kwargs['to'] = TransitionTarget(kind=GROUP_TARGET, value=group)
        super().__init__(**kwargs)

    @property
    def target_kind(self):
        return self.to.kind if self.to else None

    @property
    def target_id(self):
        return self.to.value if self.to else None

    @property
    def is_plain(self):
        return type(self) is TimeZoneTransition


class AbsoluteDateTransition(TimeZoneTransition):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/absolutedatetransition
    """
    ELEMENT_NAME = 'AbsoluteDateTransition'

    FIELDS = TimeZoneTransition.FIELDS + (
        TransitionDateTimeField('date_time', field_uri='DateTime', is_required=True),
    )


class RelativeDayOfMonthTransition(TimeZoneTransition):
    """A yearly transition on e.g. the last Sunday of March.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/recurringdaytransition
    """
    ELEMENT_NAME = 'RecurringDayTransition'

    FIELDS = TimeZoneTransition.FIELDS + (
        TimeDeltaField('time_offset', field_uri='TimeOffset', is_required=True),
        IntegerField('month', field_uri='Month', min=1, max=12, is_required=True),
        ChoiceField('day_of_week', field_uri='DayOfWeek', choices=WEEKDAY_NAMES, is_required=True),
        # 1 -> 4 for the n'th occurrence of the weekday in the month, -1 for the last occurrence
        IntegerField('occurrence', field_uri='Occurrence', min=-1, max=5, is_required=True),
    )


class AbsoluteDayOfMonthTransition(TimeZoneTransition):
    """A yearly transition on a fixed date.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/recurringdatetransition
    """
    ELEMENT_NAME = 'RecurringDateTransition'

    FIELDS = TimeZoneTransition.FIELDS + (
        TimeDeltaField('time_offset', field_uri='TimeOffset', is_required=True),
        IntegerField('month', field_uri='Month', min=1, max=12, is_required=True),
        IntegerField('day', field_uri='Day', min=1, max=31, is_required=True),
    )


TRANSITION_CLASSES = {cls.ELEMENT_NAME: cls for cls in (
    AbsoluteDateTransition, RelativeDayOfMonthTransition, AbsoluteDayOfMonthTransition, TimeZoneTransition,
)}


def create_transition_from_xml(reader):
    """Returns the transition that 'reader' points to, or None if the element is not a transition"""
    cls = TRANSITION_CLASSES.get(reader.local_name)
    if cls is None:
        return None
    transition = cls()
    transition.load_from_xml(reader)
    return transition


def _read_transition(reader):
    transition = create_transition_from_xml(reader)
    if transition is None:
        raise MalformedResponseError('Unknown time zone transition type %r' % reader.local_name)
    return transition


def _invalid(msg):
    return ServiceValidationException('Invalid or unsupported time zone definition: %s' % msg)


class TimeZoneTransitionGroup(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/transitionsgroup"""
    ELEMENT_NAME = 'TransitionsGroup'

    FIELDS = (
        TextField('id', field_uri='Id', is_attribute=True, is_required=True),
    )

    def __init__(self, transitions=None, **kwargs):
        self._set_quietly('transitions', list(transitions or ()))
        super().__init__(**kwargs)

    @property
    def supports_daylight(self):
        return len(self.transitions) == 2

    def try_read_element_from_xml(self, reader):
        self.transitions.append(_read_transition(reader))
        return True

    def write_elements_to_xml(self, writer):
        for transition in self.transitions:
            transition.write_to_xml(writer)

    def internal_validate(self):
        super().internal_validate()
        if not 1 <= len(self.transitions) <= 2:
            raise _invalid('group %r must have one or two transitions' % self.id)
        if len(self.transitions) == 1 and not self.transitions[0].is_plain:
            raise _invalid('the single transition of group %r must be a plain transition' % self.id)
        if len(self.transitions) == 2 and any(t.is_plain for t in self.transitions):
            raise _invalid('the two transitions of group %r must be recurring transitions' % self.id)
        for transition in self.transitions:
            if transition.target_kind != PERIOD_TARGET:
                raise _invalid('all transitions of group %r must target a period' % self.id)

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.transitions, other.transitions)


class TimeZoneDefinition(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/timezonedefinition"""
    ELEMENT_NAME = 'TimeZoneDefinition'

    FIELDS = (
        TextField('name', field_uri='Name', is_attribute=True, supported_from=EXCHANGE_2010),
        TextField('id', field_uri='Id', is_attribute=True),
    )

    def __init__(self, periods=None, transition_groups=None, transitions=None, **kwargs):
        self._set_quietly('periods', {p.id: p for p in periods or ()})
        self._set_quietly('transition_groups', {g.id: g for g in transition_groups or ()})
        self._set_quietly('transitions', list(transitions or ()))
        super().__init__(**kwargs)

    @classmethod
    def from_timezone(cls, tz):
        """A minimal definition for a time zone known by its Windows id. The server fills in the rules."""
        return cls(id=tz.ms_id, name=tz.ms_name or None)

    def get_timezone(self):
        try:
            return EWSTimeZone.from_ms_id(self.id)
        except UnknownTimeZone:
            log.warning('Time zone %r has no local equivalent', self.id)
            return None

    def load_from_xml(self, reader):
        super().load_from_xml(reader)
        self._resolve_targets()
        # Plain transitions come first, then absolute date transitions in chronological order
        self.transitions.sort(key=lambda t: (
            not t.is_plain, getattr(t, 'date_time', None) or datetime.datetime.min
        ))

    def read_attributes_from_xml(self, reader):
        super().read_attributes_from_xml(reader)
        if not self.id:
            # EWS can return a definition without an id. Generate a stable one from the name.
            self._set_quietly('id', '%s%s' % (NO_ID_PREFIX, zlib.crc32((self.name or '').encode('utf-8'))))

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Periods':
            for child in reader.findall('Period'):
                period = TimeZonePeriod()
                period.load_from_xml(child)
                if period.id in self.periods:
                    # Bad data from clients can include duplicate periods. The first one wins.
                    existing = self.periods[period.id]
                    log.info('Skipping duplicate period %r (%s, %s). Keeping (%s, %s)', period.id, period.name,
                             period.bias, existing.name, existing.bias)
                    continue
                self.periods[period.id] = period
            return True
        if reader.local_name == 'TransitionsGroups':
            for child in reader.findall('TransitionsGroup'):
                group = TimeZoneTransitionGroup()
                group.load_from_xml(child)
                self.transition_groups[group.id] = group
            return True
        if reader.local_name == 'Transitions':
            for child in reader.children():
                self.transitions.append(_read_transition(child))
            return True
        return super().try_read_element_from_xml(reader)

    def _resolve_targets(self):
        for group in self.transition_groups.values():
            for transition in group.transitions:
                if transition.target_kind == PERIOD_TARGET and transition.target_id not in self.periods:
                    raise MalformedResponseError('Period %r not found' % transition.target_id)
        for transition in self.transitions:
            if transition.target_kind == GROUP_TARGET and transition.target_id not in self.transition_groups:
                raise MalformedResponseError('Transition group %r not found' % transition.target_id)
            if transition.target_kind == PERIOD_TARGET and transition.target_id not in self.periods:
                raise MalformedResponseError('Period %r not found' % transition.target_id)

    def target_group(self, transition):
        if transition.target_kind != GROUP_TARGET:
            return None
        return self.transition_groups.get(transition.target_id)

    def write_elements_to_xml(self, writer):
        # The full definition is only understood by Exchange 2010 and later
        if writer.version and not writer.version.supports(EXCHANGE_2010):
            return
        if self.periods:
            writer.start('t:Periods')
            for period in self.periods.values():
                period.write_to_xml(writer)
            writer.end()
        if self.transition_groups:
            writer.start('t:TransitionsGroups')
            for group in self.transition_groups.values():
                group.write_to_xml(writer)
            writer.end()
        if self.transitions:
            writer.start('t:Transitions')
            for transition in self.transitions:
                transition.write_to_xml(writer)
            writer.end()

    def internal_validate(self):
        super().internal_validate()
        if not self.periods or not self.transition_groups or not self.transitions:
            raise _invalid('at least one period, one transition group and one transition are required')
        if len(self.transition_groups) != len(self.transitions):
            raise _invalid('there must be as many transitions as transition groups')
        if not self.transitions[0].is_plain:
            raise _invalid('the first transition must be a plain transition')
        for transition in self.transitions:
            if not isinstance(transition, AbsoluteDateTransition) and not transition.is_plain:
                raise _invalid('transitions must be plain or absolute date transitions')
            if self.target_group(transition) is None:
                raise _invalid('all transitions must target a transition group')
        for group in self.transition_groups.values():
            group.validate()

    def is_same(self, other):
        return super().is_same(other) \
            and values_are_same(sorted(self.periods.values(), key=lambda p: p.id),
                                sorted(other.periods.values(), key=lambda p: p.id)) \
            and values_are_same(sorted(self.transition_groups.values(), key=lambda g: g.id),
                                sorted(other.transition_groups.values(), key=lambda g: g.id)) \
            and values_are_same(self.transitions, other.transitions)
