from exchangews.errors import ServiceValidationException
from exchangews.ewsdatetime import EWSDate
from exchangews.fields import MONDAY, FRIDAY, FEBRUARY, AUGUST, SECOND, LAST, WEEKEND_DAY, SUNDAY
from exchangews.items import Task
from exchangews.recurrence import Recurrence, AbsoluteYearlyRecurrence, RelativeYearlyRecurrence, \
    AbsoluteMonthlyRecurrence, RelativeMonthlyRecurrence, WeeklyRecurrence, DailyRecurrence, DailyRegeneration, \
    NoEndRecurrence, EndDateRecurrence, NumberedRecurrence
from exchangews.util import to_xml, TNS
from exchangews.version import Version, EXCHANGE_2010
from exchangews.xml_rw import EwsXmlReader, EwsXmlWriter

from .common import TimedTestCase, get_mock_account


class RecurrenceTest(TimedTestCase):
    def test_magic(self):
        pattern = AbsoluteYearlyRecurrence(month=FEBRUARY, day_of_month=28)
        self.assertEqual(str(pattern), 'Occurs on day 28 of February')
        pattern = RelativeYearlyRecurrence(month=AUGUST, week_number=SECOND, weekday=MONDAY)
        self.assertEqual(str(pattern), 'Occurs on weekday Monday in the Second week of August')
        pattern = AbsoluteMonthlyRecurrence(interval=3, day_of_month=31)
        self.assertEqual(str(pattern), 'Occurs on day 31 of every 3 month(s)')
        pattern = RelativeMonthlyRecurrence(interval=2, week_number=LAST, weekday=FRIDAY)
        self.assertEqual(str(pattern), 'Occurs on weekday Friday in the Last week of every 2 month(s)')
        pattern = WeeklyRecurrence(interval=4, weekdays=[WEEKEND_DAY], first_day_of_week=SUNDAY)
        self.assertEqual(str(pattern),
                         'Occurs on weekdays WeekendDay of every 4 week(s) where the first day of the week is Sunday')
        pattern = DailyRecurrence(interval=6)
        self.assertEqual(str(pattern), 'Occurs every 6 day(s)')
        self.assertFalse(pattern.is_regeneration_pattern)
        self.assertTrue(DailyRegeneration(interval=1).is_regeneration_pattern)

    def test_is_same(self):
        for pattern in (
                DailyRecurrence(interval=1),
                DailyRegeneration(interval=1),
                WeeklyRecurrence(interval=2, weekdays=[MONDAY, FRIDAY]),
                AbsoluteYearlyRecurrence(month=FEBRUARY, day_of_month=28),
        ):
            with self.subTest(pattern=pattern):
                self.assertTrue(pattern.is_same(pattern))
                self.assertFalse(pattern.is_same(None))
        self.assertTrue(DailyRecurrence(interval=1).is_same(DailyRecurrence(interval=1)))
        self.assertFalse(DailyRecurrence(interval=1).is_same(DailyRecurrence(interval=2)))
        # Same base fields, but different concrete types
        self.assertFalse(DailyRecurrence(interval=1).is_same(DailyRegeneration(interval=1)))
        self.assertFalse(DailyRegeneration(interval=1).is_same(DailyRecurrence(interval=1)))
        start = EWSDate(2017, 9, 1)
        self.assertFalse(NoEndRecurrence(start=start).is_same(NumberedRecurrence(start=start)))
        r = Recurrence(pattern=DailyRecurrence(interval=1), start=start)
        self.assertTrue(r.is_same(r))
        self.assertFalse(r.is_same(Recurrence(pattern=DailyRegeneration(interval=1), start=start)))

    def test_boundary_shortcuts(self):
        p = DailyRecurrence(interval=3)
        d_start = EWSDate(2017, 9, 1)
        d_end = EWSDate(2017, 9, 7)
        with self.assertRaises(ValueError):
            Recurrence(pattern=p, boundary='foo', start='bar')  # Specify *either* boundary *or* start, end and number
        with self.assertRaises(ValueError):
            Recurrence(pattern=p, start='foo', end='bar', number='baz')  # number is invalid when end is present
        with self.assertRaises(ValueError):
            Recurrence(pattern=p, end='bar', number='baz')  # Must have start
        r = Recurrence(pattern=p, start=d_start)
        self.assertTrue(r.boundary.is_same(NoEndRecurrence(start=d_start)))
        r = Recurrence(pattern=p, start=d_start, end=d_end)
        self.assertTrue(r.boundary.is_same(EndDateRecurrence(start=d_start, end=d_end)))
        r = Recurrence(pattern=p, start=d_start, number=1)
        self.assertTrue(r.boundary.is_same(NumberedRecurrence(start=d_start, number=1)))
        self.assertFalse(r.boundary.is_same(NumberedRecurrence(start=d_start, number=2)))

    def test_validation(self):
        start = EWSDate(2017, 9, 1)
        with self.assertRaises(ServiceValidationException):
            WeeklyRecurrence(interval=1, weekdays=[]).validate()
        with self.assertRaises(ServiceValidationException):
            WeeklyRecurrence(interval=0, weekdays=[MONDAY]).validate()
        with self.assertRaises(ServiceValidationException):
            DailyRecurrence().validate()  # 'interval' is required
        with self.assertRaises(ServiceValidationException):
            RelativeMonthlyRecurrence(interval=1, weekday=MONDAY).validate()
        with self.assertRaises(ServiceValidationException):
            AbsoluteYearlyRecurrence(month=FEBRUARY, day_of_month=32).validate()
        with self.assertRaises(ServiceValidationException):
            EndDateRecurrence(start=start, end=EWSDate(2017, 8, 1)).validate()
        with self.assertRaises(ServiceValidationException):
            NumberedRecurrence(start=start, number=0).validate()
        with self.assertRaises(ServiceValidationException):
            Recurrence(pattern=DailyRecurrence(interval=1)).validate()  # No boundary
        # Nested values are validated too
        with self.assertRaises(ServiceValidationException):
            Recurrence(pattern=WeeklyRecurrence(interval=1), start=start).validate()
        Recurrence(pattern=WeeklyRecurrence(interval=1, weekdays=[MONDAY, FRIDAY]), start=start).validate()

    def test_read(self):
        xml = '''\
<t:Recurrence xmlns:t="%s">
  <t:WeeklyRecurrence>
    <t:Interval>2</t:Interval>
    <t:DaysOfWeek>Monday Friday</t:DaysOfWeek>
    <t:FirstDayOfWeek>Sunday</t:FirstDayOfWeek>
  </t:WeeklyRecurrence>
  <t:EndDateRecurrence>
    <t:StartDate>2017-09-01</t:StartDate>
    <t:EndDate>2017-12-01</t:EndDate>
  </t:EndDateRecurrence>
</t:Recurrence>''' % TNS
        r = Recurrence()
        r.load_from_xml(EwsXmlReader(to_xml(xml.encode('utf-8')).getroot()))
        self.assertIsInstance(r.pattern, WeeklyRecurrence)
        self.assertEqual(r.pattern.interval, 2)
        self.assertEqual(r.pattern.weekdays, [MONDAY, FRIDAY])
        self.assertEqual(r.pattern.first_day_of_week, SUNDAY)
        self.assertIsInstance(r.boundary, EndDateRecurrence)
        self.assertEqual(r.boundary.start, EWSDate(2017, 9, 1))
        self.assertEqual(r.boundary.end, EWSDate(2017, 12, 1))

    def test_read_unknown_pattern(self):
        xml = '<t:Recurrence xmlns:t="%s"><t:FooRecurrence/></t:Recurrence>' % TNS
        r = Recurrence()
        r.load_from_xml(EwsXmlReader(to_xml(xml.encode('utf-8')).getroot()))
        self.assertIsNone(r.pattern)
        self.assertIsNone(r.boundary)

    def test_write(self):
        r = Recurrence(pattern=WeeklyRecurrence(interval=1, weekdays=[MONDAY], first_day_of_week=MONDAY),
                       start=EWSDate(2017, 9, 1), number=5)
        writer = EwsXmlWriter(version=Version(EXCHANGE_2010))
        r.write_to_xml(writer)
        ns = dict(ns=TNS)
        self.assertEqual([e.tag for e in writer.root], [
            '{%s}WeeklyRecurrence' % TNS, '{%s}NumberedRecurrence' % TNS
        ])
        self.assertEqual(writer.root.findtext('{%(ns)s}WeeklyRecurrence/{%(ns)s}DaysOfWeek' % ns), 'Monday')
        # FirstDayOfWeek is not supported by Exchange 2010
        self.assertIsNone(writer.root.find('{%(ns)s}WeeklyRecurrence/{%(ns)s}FirstDayOfWeek' % ns))
        self.assertEqual(writer.root.findtext('{%(ns)s}NumberedRecurrence/{%(ns)s}StartDate' % ns), '2017-09-01')
        self.assertEqual(writer.root.findtext('{%(ns)s}NumberedRecurrence/{%(ns)s}NumberOfOccurrences' % ns), '5')

    def test_nested_change_marks_property_modified(self):
        account = get_mock_account()
        xml = '''\
<t:Task xmlns:t="%s">
  <t:ItemId Id="AAA" ChangeKey="BBB"/>
  <t:Recurrence>
    <t:DailyRecurrence><t:Interval>1</t:Interval></t:DailyRecurrence>
    <t:NoEndRecurrence><t:StartDate>2017-09-01</t:StartDate></t:NoEndRecurrence>
  </t:Recurrence>
</t:Task>''' % TNS
        task = Task.from_xml(EwsXmlReader(to_xml(xml.encode('utf-8')).getroot(), version=account.version),
                             account=account)
        self.assertFalse(task.is_dirty)
        task.recurrence.pattern.interval = 2
        self.assertEqual([f.name for f in task.property_bag.modified_properties], ['recurrence'])
