import logging

from .errors import ServiceValidationException
from .fields import IntegerField, ChoiceField, EnumListField, DateField, EWSElementField, MONTHS, WEEK_NUMBERS, \
    WEEKDAYS, WEEKDAY_NAMES
from .properties import ComplexProperty
from .version import EXCHANGE_2010_SP1

log = logging.getLogger(__name__)


class Pattern(ComplexProperty):
    """Base class for all classes implementing recurring pattern elements"""
    is_regeneration_pattern = False


class IntervalPattern(Pattern):
    """Base class for patterns that repeat every n days, weeks, months or years"""
    FIELDS = (
        IntegerField('interval', field_uri='Interval', min=1, is_required=True),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.interval < 1:
            raise ServiceValidationException('The interval must be greater than or equal to 1 (got %s)' % self.interval)


class AbsoluteYearlyRecurrence(Pattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/absoluteyearlyrecurrence
    """
    ELEMENT_NAME = 'AbsoluteYearlyRecurrence'

    FIELDS = (
        # The day of month of an occurrence, in range 1 -> 31. If a particular month has less days than the day_of_month
        # value, the last day in the month is assumed
        IntegerField('day_of_month', field_uri='DayOfMonth', min=1, max=31, is_required=True),
        ChoiceField('month', field_uri='Month', choices=MONTHS, is_required=True),
    )

    def internal_validate(self):
        super().internal_validate()
        if not 1 <= self.day_of_month <= 31:
            raise ServiceValidationException('The day of the month must be in the range 1 -> 31')

    def __str__(self):
        return 'Occurs on day %s of %s' % (self.day_of_month, self.month)


class RelativeYearlyRecurrence(Pattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/relativeyearlyrecurrence
    """
    ELEMENT_NAME = 'RelativeYearlyRecurrence'

    FIELDS = (
        # The weekday of the occurrence. Can also be one of DAY, WEEK_DAY or WEEKEND_DAY, meaning the first day,
        # weekday, or weekend day in the month, respectively.
        ChoiceField('weekday', field_uri='DaysOfWeek', choices=WEEKDAYS),
        # Week number of the month. LAST means the last week of the month for months that have only 4 weeks
        ChoiceField('week_number', field_uri='DayOfWeekIndex', choices=WEEK_NUMBERS),
        ChoiceField('month', field_uri='Month', choices=MONTHS),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.week_number is None:
            raise ServiceValidationException('The day of the week index must be specified for relative patterns')
        if self.weekday is None:
            raise ServiceValidationException('The day of the week must be specified for relative patterns')
        if self.month is None:
            raise ServiceValidationException('The month must be specified for yearly patterns')

    def __str__(self):
        return 'Occurs on weekday %s in the %s week of %s' % (self.weekday, self.week_number, self.month)


class AbsoluteMonthlyRecurrence(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/absolutemonthlyrecurrence
    """
    ELEMENT_NAME = 'AbsoluteMonthlyRecurrence'

    FIELDS = IntervalPattern.FIELDS + (
        IntegerField('day_of_month', field_uri='DayOfMonth', min=1, max=31, is_required=True),
    )

    def internal_validate(self):
        super().internal_validate()
        if not 1 <= self.day_of_month <= 31:
            raise ServiceValidationException('The day of the month must be in the range 1 -> 31')

    def __str__(self):
        return 'Occurs on day %s of every %s month(s)' % (self.day_of_month, self.interval)


class RelativeMonthlyRecurrence(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/relativemonthlyrecurrence
    """
    ELEMENT_NAME = 'RelativeMonthlyRecurrence'

    FIELDS = IntervalPattern.FIELDS + (
        ChoiceField('weekday', field_uri='DaysOfWeek', choices=WEEKDAYS),
        ChoiceField('week_number', field_uri='DayOfWeekIndex', choices=WEEK_NUMBERS),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.week_number is None:
            raise ServiceValidationException('The day of the week index must be specified for relative patterns')
        if self.weekday is None:
            raise ServiceValidationException('The day of the week must be specified for relative patterns')

    def __str__(self):
        return 'Occurs on weekday %s in the %s week of every %s month(s)' % (
            self.weekday, self.week_number, self.interval)


class WeeklyRecurrence(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/weeklyrecurrence
    """
    ELEMENT_NAME = 'WeeklyRecurrence'

    FIELDS = IntervalPattern.FIELDS + (
        EnumListField('weekdays', field_uri='DaysOfWeek', choices=WEEKDAYS),
        ChoiceField('first_day_of_week', field_uri='FirstDayOfWeek', choices=WEEKDAY_NAMES,
                    supported_from=EXCHANGE_2010_SP1),
    )

    def internal_validate(self):
        super().internal_validate()
        if not self.weekdays:
            raise ServiceValidationException('Weekly recurrence pattern: days of the week not specified')

    def __str__(self):
        return 'Occurs on weekdays %s of every %s week(s) where the first day of the week is %s' % (
            ', '.join(self.weekdays or ()), self.interval, self.first_day_of_week or '(server default)'
        )


class DailyRecurrence(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/dailyrecurrence
    """
    ELEMENT_NAME = 'DailyRecurrence'

    def __str__(self):
        return 'Occurs every %s day(s)' % self.interval


class DailyRegeneration(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/dailyregeneration"""
    ELEMENT_NAME = 'DailyRegeneration'
    is_regeneration_pattern = True


class WeeklyRegeneration(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/weeklyregeneration"""
    ELEMENT_NAME = 'WeeklyRegeneration'
    is_regeneration_pattern = True


class MonthlyRegeneration(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/monthlyregeneration"""
    ELEMENT_NAME = 'MonthlyRegeneration'
    is_regeneration_pattern = True


class YearlyRegeneration(IntervalPattern):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/yearlyregeneration"""
    ELEMENT_NAME = 'YearlyRegeneration'
    is_regeneration_pattern = True


class Boundary(ComplexProperty):
    """Base class for all classes implementing recurring boundary elements"""
    FIELDS = (
        DateField('start', field_uri='StartDate', is_required=True),
    )


class NoEndRecurrence(Boundary):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/noendrecurrence"""
    ELEMENT_NAME = 'NoEndRecurrence'


class EndDateRecurrence(Boundary):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/enddaterecurrence"""
    ELEMENT_NAME = 'EndDateRecurrence'

    FIELDS = Boundary.FIELDS + (
        DateField('end', field_uri='EndDate', is_required=True),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.end < self.start:
            raise ServiceValidationException('The end date %s must not be before the start date %s' % (
                self.end, self.start))


class NumberedRecurrence(Boundary):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/numberedrecurrence"""
    ELEMENT_NAME = 'NumberedRecurrence'

    FIELDS = Boundary.FIELDS + (
        IntegerField('number', field_uri='NumberOfOccurrences', min=1, is_required=True),
    )

    def internal_validate(self):
        super().internal_validate()
        if self.number < 1:
            raise ServiceValidationException('The number of occurrences must be greater than zero')


PATTERN_CLASSES = {cls.ELEMENT_NAME: cls for cls in (
    RelativeYearlyRecurrence, AbsoluteYearlyRecurrence, RelativeMonthlyRecurrence, AbsoluteMonthlyRecurrence,
    WeeklyRecurrence, DailyRecurrence, DailyRegeneration, WeeklyRegeneration, MonthlyRegeneration, YearlyRegeneration,
)}
BOUNDARY_CLASSES = {cls.ELEMENT_NAME: cls for cls in (NoEndRecurrence, EndDateRecurrence, NumberedRecurrence)}


def _create_from_xml(classes, reader):
    cls = classes.get(reader.local_name)
    if cls is None:
        log.debug('Unknown element %s', reader.local_name)
        return None
    obj = cls()
    obj.load_from_xml(reader)
    return obj


def create_pattern_from_xml(reader):
    return _create_from_xml(PATTERN_CLASSES, reader)


def create_boundary_from_xml(reader):
    return _create_from_xml(BOUNDARY_CLASSES, reader)


class Recurrence(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/recurrence-recurrencetype
    """
    ELEMENT_NAME = 'Recurrence'

    FIELDS = (
        EWSElementField('pattern', element_name='Pattern', value_cls=Pattern, is_required=True),
        EWSElementField('boundary', element_name='Boundary', value_cls=Boundary, is_required=True),
    )

    def __init__(self, **kwargs):
        # Allow specifying a start, end and/or number as a shortcut to creating a boundary
        start = kwargs.pop('start', None)
        end = kwargs.pop('end', None)
        number = kwargs.pop('number', None)
        if any([start, end, number]):
            if 'boundary' in kwargs:
                raise ValueError("'boundary' is not allowed in combination with 'start', 'end' or 'number'")
            if start and not end and not number:
                kwargs['boundary'] = NoEndRecurrence(start=start)
            elif start and end and not number:
                kwargs['boundary'] = EndDateRecurrence(start=start, end=end)
            elif start and number and not end:
                kwargs['boundary'] = NumberedRecurrence(start=start, number=number)
            else:
                raise ValueError("Unsupported 'start', 'end', 'number' combination")
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        pattern = create_pattern_from_xml(reader)
        if pattern is not None:
            self.pattern = pattern
            return True
        boundary = create_boundary_from_xml(reader)
        if boundary is not None:
            self.boundary = boundary
            return True
        return False

    def write_elements_to_xml(self, writer):
        # Pattern and boundary elements are named after their concrete type
        self.pattern.write_to_xml(writer)
        self.boundary.write_to_xml(writer)

    def __str__(self):
        return 'Pattern: %s, Boundary: %s' % (self.pattern, self.boundary)
