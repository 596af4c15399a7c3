import datetime

from exchangews.errors import MalformedResponseError, ServiceValidationException
from exchangews.ewsdatetime import EWSTimeZone
from exchangews.timezones import TimeZoneDefinition, TimeZonePeriod, TimeZoneTransition, TimeZoneTransitionGroup, \
    AbsoluteDateTransition, RelativeDayOfMonthTransition, AbsoluteDayOfMonthTransition, TransitionTarget, \
    create_transition_from_xml, NO_ID_PREFIX
from exchangews.util import to_xml, TNS
from exchangews.version import Version, EXCHANGE_2007, EXCHANGE_2013
from exchangews.xml_rw import EwsXmlReader, EwsXmlWriter

from .common import TimedTestCase

DEFINITION = '''\
<t:TimeZoneDefinition xmlns:t="%s" Name="(UTC+01:00) Amsterdam, Berlin" Id="W. Europe Standard Time">
  <t:Periods>
    <t:Period Bias="-PT1H" Name="Standard" Id="trule:Microsoft/Registry/W. Europe Standard Time/2006-Standard"/>
    <t:Period Bias="-PT2H" Name="Daylight" Id="trule:Microsoft/Registry/W. Europe Standard Time/2006-Daylight"/>
    <t:Period Bias="-PT1H" Name="Standard" Id="trule:Microsoft/Registry/W. Europe Standard Time/2006-Standard"/>
  </t:Periods>
  <t:TransitionsGroups>
    <t:TransitionsGroup Id="0">
      <t:RecurringDayTransition>
        <t:To Kind="Period">trule:Microsoft/Registry/W. Europe Standard Time/2006-Daylight</t:To>
        <t:TimeOffset>PT2H</t:TimeOffset>
        <t:Month>3</t:Month>
        <t:DayOfWeek>Sunday</t:DayOfWeek>
        <t:Occurrence>-1</t:Occurrence>
      </t:RecurringDayTransition>
      <t:RecurringDayTransition>
        <t:To Kind="Period">trule:Microsoft/Registry/W. Europe Standard Time/2006-Standard</t:To>
        <t:TimeOffset>PT3H</t:TimeOffset>
        <t:Month>10</t:Month>
        <t:DayOfWeek>Sunday</t:DayOfWeek>
        <t:Occurrence>-1</t:Occurrence>
      </t:RecurringDayTransition>
    </t:TransitionsGroup>
    <t:TransitionsGroup Id="1">
      <t:Transition>
        <t:To Kind="Period">trule:Microsoft/Registry/W. Europe Standard Time/2006-Standard</t:To>
      </t:Transition>
    </t:TransitionsGroup>
  </t:TransitionsGroups>
  <t:Transitions>
    <t:AbsoluteDateTransition>
      <t:To Kind="Group">1</t:To>
      <t:DateTime>2007-01-01T00:00:00</t:DateTime>
    </t:AbsoluteDateTransition>
    <t:Transition>
      <t:To Kind="Group">0</t:To>
    </t:Transition>
  </t:Transitions>
</t:TimeZoneDefinition>''' % TNS

STANDARD_ID = 'trule:Microsoft/Registry/W. Europe Standard Time/2006-Standard'
DAYLIGHT_ID = 'trule:Microsoft/Registry/W. Europe Standard Time/2006-Daylight'


def reader_for(xml):
    return EwsXmlReader(to_xml(xml.encode('utf-8')).getroot())


def load_definition(xml=DEFINITION):
    tzd = TimeZoneDefinition()
    tzd.load_from_xml(reader_for(xml))
    return tzd


class TimeZoneDefinitionTest(TimedTestCase):
    def test_load(self):
        tzd = load_definition()
        self.assertEqual(tzd.id, 'W. Europe Standard Time')
        self.assertEqual(tzd.name, '(UTC+01:00) Amsterdam, Berlin')
        # The duplicate period is skipped
        self.assertEqual(sorted(tzd.periods), [DAYLIGHT_ID, STANDARD_ID])
        self.assertEqual(tzd.periods[DAYLIGHT_ID].bias, datetime.timedelta(hours=-2))
        self.assertTrue(tzd.periods[STANDARD_ID].is_standard_period)
        self.assertFalse(tzd.periods[DAYLIGHT_ID].is_standard_period)
        self.assertEqual(sorted(tzd.transition_groups), ['0', '1'])
        group = tzd.transition_groups['0']
        self.assertTrue(group.supports_daylight)
        self.assertFalse(tzd.transition_groups['1'].supports_daylight)
        dst_start = group.transitions[0]
        self.assertIsInstance(dst_start, RelativeDayOfMonthTransition)
        self.assertEqual(dst_start.target_id, DAYLIGHT_ID)
        self.assertEqual(dst_start.time_offset, datetime.timedelta(hours=2))
        self.assertEqual(dst_start.month, 3)
        self.assertEqual(dst_start.day_of_week, 'Sunday')
        self.assertEqual(dst_start.occurrence, -1)
        # Plain transitions are sorted before absolute date transitions
        first, second = tzd.transitions
        self.assertTrue(first.is_plain)
        self.assertIs(tzd.target_group(first), group)
        self.assertIsInstance(second, AbsoluteDateTransition)
        self.assertEqual(second.date_time, datetime.datetime(2007, 1, 1))
        self.assertIs(tzd.target_group(second), tzd.transition_groups['1'])
        tzd.validate()

    def test_get_timezone(self):
        tzd = load_definition()
        self.assertEqual(tzd.get_timezone(), EWSTimeZone.timezone('Europe/Berlin'))
        self.assertIsNone(TimeZoneDefinition(id='No Such Time Zone').get_timezone())
        tzd = TimeZoneDefinition.from_timezone(EWSTimeZone.timezone('Europe/Copenhagen'))
        self.assertEqual(tzd.id, 'Romance Standard Time')
        self.assertIsNone(tzd.name)

    def test_missing_id(self):
        tzd = load_definition('<t:TimeZoneDefinition xmlns:t="%s" Name="Foo"/>' % TNS)
        self.assertTrue(tzd.id.startswith(NO_ID_PREFIX))
        # The generated id is stable
        self.assertEqual(tzd.id, load_definition('<t:TimeZoneDefinition xmlns:t="%s" Name="Foo"/>' % TNS).id)

    def test_bad_references(self):
        with self.assertRaises(MalformedResponseError):
            load_definition(DEFINITION.replace('<t:To Kind="Group">1</t:To>', '<t:To Kind="Group">2</t:To>'))
        with self.assertRaises(MalformedResponseError):
            load_definition(DEFINITION.replace(
                '>trule:Microsoft/Registry/W. Europe Standard Time/2006-Daylight</t:To>', '>XXX</t:To>'))
        with self.assertRaises(MalformedResponseError):
            load_definition(DEFINITION.replace('RecurringDayTransition>', 'RecurringFooTransition>'))

    def test_create_transition(self):
        transition = create_transition_from_xml(reader_for('''\
<t:RecurringDateTransition xmlns:t="%s">
  <t:To Kind="Period">Std</t:To>
  <t:TimeOffset>PT1H</t:TimeOffset>
  <t:Month>4</t:Month>
  <t:Day>15</t:Day>
</t:RecurringDateTransition>''' % TNS))
        self.assertIsInstance(transition, AbsoluteDayOfMonthTransition)
        self.assertEqual(transition.target_kind, 'Period')
        self.assertEqual(transition.day, 15)
        self.assertIsNone(create_transition_from_xml(reader_for('<t:FooTransition xmlns:t="%s"/>' % TNS)))

    def test_validation(self):
        with self.assertRaises(ServiceValidationException):
            TimeZoneDefinition(id='Foo').validate()
        tzd = load_definition()
        # The first transition must be a plain transition
        tzd.transitions.reverse()
        with self.assertRaises(ServiceValidationException):
            tzd.validate()
        group = TimeZoneTransitionGroup(id='0', transitions=[
            RelativeDayOfMonthTransition(period='Std', time_offset=datetime.timedelta(hours=2), month=3,
                                         day_of_week='Sunday', occurrence=-1),
        ])
        with self.assertRaises(ServiceValidationException):
            group.validate()
        group = TimeZoneTransitionGroup(id='0', transitions=[TimeZoneTransition(group='1')])
        with self.assertRaises(ServiceValidationException):
            group.validate()
        TimeZoneTransitionGroup(id='0', transitions=[TimeZoneTransition(period='Std')]).validate()

    def test_write(self):
        tzd = TimeZoneDefinition(
            id='Foo Standard Time',
            name='Foo',
            periods=[TimeZonePeriod(id='Std', name='Standard', bias=datetime.timedelta(hours=-1))],
            transition_groups=[TimeZoneTransitionGroup(id='0', transitions=[TimeZoneTransition(period='Std')])],
            transitions=[TimeZoneTransition(group='0')],
        )
        tzd.validate()
        writer = EwsXmlWriter(version=Version(EXCHANGE_2013))
        tzd.write_to_xml(writer)
        root = writer.root
        ns = dict(ns=TNS)
        self.assertEqual(root.get('Id'), 'Foo Standard Time')
        self.assertEqual(root.get('Name'), 'Foo')
        self.assertEqual(root.find('{%(ns)s}Periods/{%(ns)s}Period' % ns).get('Bias'), '-PT1H')
        to = root.find('{%(ns)s}Transitions/{%(ns)s}Transition/{%(ns)s}To' % ns)
        self.assertEqual((to.get('Kind'), to.text), ('Group', '0'))
        to = root.find('{%(ns)s}TransitionsGroups/{%(ns)s}TransitionsGroup/{%(ns)s}Transition/{%(ns)s}To' % ns)
        self.assertEqual((to.get('Kind'), to.text), ('Period', 'Std'))
        # Reading the written XML gives the same definition
        self.assertTrue(TimeZoneDefinition().is_same(TimeZoneDefinition()))
        copy = TimeZoneDefinition()
        copy.load_from_xml(EwsXmlReader(root))
        self.assertTrue(copy.is_same(tzd))
        # Older servers only get the id
        writer = EwsXmlWriter(version=Version(EXCHANGE_2007))
        tzd.write_to_xml(writer)
        self.assertEqual(len(writer.root), 0)
        self.assertIsNone(writer.root.get('Name'))
        self.assertEqual(writer.root.get('Id'), 'Foo Standard Time')

    def test_transition_target(self):
        target = TransitionTarget(kind='Period', value='Std')
        self.assertTrue(target.is_same(TransitionTarget(kind='Period', value='Std')))
        self.assertFalse(target.is_same(TransitionTarget(kind='Group', value='Std')))
        self.assertIsNone(TimeZoneTransition().target_id)
