import datetime

import pytz

from exchangews.errors import NaiveDateTimeNotAllowed, UnknownTimeZone, AmbiguousTimeError, NonExistentTimeError
from exchangews.ewsdatetime import EWSDateTime, EWSDate, EWSTimeZone, UTC, UTC_NOW

from .common import TimedTestCase


class EWSDateTimeTest(TimedTestCase):
    def test_timezone(self):
        tz = EWSTimeZone.timezone('Europe/Copenhagen')
        self.assertIsInstance(tz, EWSTimeZone)
        self.assertEqual(tz.ms_id, 'Romance Standard Time')
        self.assertEqual(tz.ms_name, '')
        # Equality is based on the Windows ID
        self.assertEqual(tz, EWSTimeZone.timezone('Europe/Paris'))
        self.assertEqual(hash(tz), hash(EWSTimeZone.timezone('Europe/Paris')))
        self.assertEqual(EWSTimeZone.from_ms_id('Romance Standard Time'), tz)
        # Some servers send IANA names
        self.assertEqual(EWSTimeZone.from_ms_id('Europe/Copenhagen').ms_id, 'Romance Standard Time')
        self.assertEqual(EWSTimeZone.from_pytz(pytz.timezone('Europe/Copenhagen')), tz)
        self.assertEqual(UTC.ms_id, 'UTC')
        with self.assertRaises(UnknownTimeZone):
            EWSTimeZone.timezone('Europe/Nowhere')
        with self.assertRaises(UnknownTimeZone):
            EWSTimeZone.from_ms_id('Nowhere Standard Time')

    def test_localize(self):
        tz = EWSTimeZone.timezone('Europe/Copenhagen')
        dt = tz.localize(EWSDateTime(2017, 6, 21, 18, 40, 2))
        self.assertIsInstance(dt, EWSDateTime)
        self.assertIsInstance(dt.tzinfo, EWSTimeZone)
        self.assertEqual(dt.ewsformat(), '2017-06-21T18:40:02+02:00')
        self.assertEqual(dt.astimezone(UTC).ewsformat(), '2017-06-21T16:40:02Z')
        self.assertIsInstance(dt.astimezone(UTC), EWSDateTime)
        with self.assertRaises(AmbiguousTimeError):
            tz.localize(EWSDateTime(2017, 10, 29, 2, 30), is_dst=None)
        with self.assertRaises(NonExistentTimeError):
            tz.localize(EWSDateTime(2017, 3, 26, 2, 30), is_dst=None)

    def test_arithmetic(self):
        dt = UTC.localize(EWSDateTime(2017, 6, 21, 18, 40, 2))
        self.assertIsInstance(dt + datetime.timedelta(days=1), EWSDateTime)
        self.assertIsInstance(dt - datetime.timedelta(days=1), EWSDateTime)
        self.assertEqual(dt - UTC.localize(EWSDateTime(2017, 6, 20, 18, 40, 2)), datetime.timedelta(days=1))
        self.assertIsInstance(dt.date(), EWSDate)
        self.assertIsInstance(UTC_NOW(), EWSDateTime)
        d = EWSDate(2017, 6, 21)
        self.assertIsInstance(d + datetime.timedelta(days=1), EWSDate)
        self.assertEqual(d - EWSDate(2017, 6, 20), datetime.timedelta(days=1))

    def test_ewsformat(self):
        self.assertEqual(UTC.localize(EWSDateTime(2017, 6, 21, 18, 40, 2, 123)).ewsformat(), '2017-06-21T18:40:02Z')
        self.assertEqual(EWSDate(2017, 6, 1).ewsformat(), '2017-06-01')
        with self.assertRaises(ValueError):
            EWSDateTime(2017, 6, 21).ewsformat()
        with self.assertRaises(ValueError):
            EWSDateTime(2017, 6, 21, tzinfo=pytz.utc)

    def test_from_string(self):
        expected = UTC.localize(EWSDateTime(2017, 6, 21, 18, 40, 2))
        self.assertEqual(EWSDateTime.from_string('2017-06-21T18:40:02Z'), expected)
        self.assertEqual(EWSDateTime.from_string('2017-06-21T20:40:02+02:00'), expected)
        self.assertEqual(EWSDateTime.from_string('2017-06-21T20:40:02+02:00').tzinfo, UTC)
        with self.assertRaises(NaiveDateTimeNotAllowed) as e:
            EWSDateTime.from_string('2017-06-21T18:40:02')
        self.assertEqual(e.exception.args[0], datetime.datetime(2017, 6, 21, 18, 40, 2))
        with self.assertRaises(ValueError):
            EWSDateTime.from_string('XXX')

        self.assertEqual(EWSDate.from_string('2017-06-21'), EWSDate(2017, 6, 21))
        self.assertEqual(EWSDate.from_string('2017-06-21Z'), EWSDate(2017, 6, 21))
        self.assertEqual(EWSDate.from_string('2017-06-21+02:00'), EWSDate(2017, 6, 21))

    def test_conversion(self):
        self.assertIsInstance(EWSDate.from_date(datetime.date(2017, 6, 21)), EWSDate)
        with self.assertRaises(ValueError):
            EWSDate.from_date(datetime.datetime(2017, 6, 21))
        dt = EWSDateTime.from_datetime(datetime.datetime(2017, 6, 21, tzinfo=pytz.utc))
        self.assertEqual(dt.tzinfo, UTC)
        self.assertIsNone(EWSDateTime.from_datetime(datetime.datetime(2017, 6, 21)).tzinfo)
        with self.assertRaises(ValueError):
            EWSDateTime.from_datetime(datetime.date(2017, 6, 21))
