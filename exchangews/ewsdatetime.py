"""
Date, datetime and timezone types that know how EWS formats them.

EWSTimeZone instances are pytz timezones that also carry the Windows timezone ID ('ms_id') that EWS uses in
TimeZoneContext headers and timezone definitions. EWSDateTime only accepts EWSTimeZone as tzinfo, so that any aware
datetime we send can name its timezone to the server.
"""
import datetime
import logging

import dateutil.parser
import pytz
import pytz.exceptions
import tzlocal

from .errors import NaiveDateTimeNotAllowed, UnknownTimeZone, AmbiguousTimeError, NonExistentTimeError
from .winzone import PYTZ_TO_MS_TIMEZONE_MAP, MS_TIMEZONE_TO_PYTZ_MAP

log = logging.getLogger(__name__)


def _strip_tz_suffix(date_string):
    # '2017-06-21Z' and '2017-06-21+02:00' -> '2017-06-21'
    if date_string.endswith('Z'):
        return date_string[:-1]
    if len(date_string) > 10 and date_string[-6] in '+-' and date_string[-3] == ':':
        return date_string[:-6]
    return date_string


class EWSDate(datetime.date):
    """A date that stays an EWSDate through arithmetic"""

    __slots__ = '_year', '_month', '_day', '_hashcode'

    def ewsformat(self):
        # xs:date, e.g. 2009-01-15
        return self.isoformat()

    def __add__(self, other):
        return self.from_date(super().__add__(other))

    def __sub__(self, other):
        res = super().__sub__(other)
        return res if isinstance(res, datetime.timedelta) else self.from_date(res)

    @classmethod
    def from_date(cls, d):
        if isinstance(d, cls):
            return d
        if type(d) is not datetime.date:
            raise ValueError("%r must be a date instance" % d)
        return cls(d.year, d.month, d.day)

    @classmethod
    def from_string(cls, date_string):
        """Parses xs:date. Servers sometimes add a timezone, which has no meaning for a date and is dropped."""
        return cls.from_date(datetime.datetime.strptime(_strip_tz_suffix(date_string), '%Y-%m-%d').date())


class EWSDateTime(datetime.datetime):
    """A datetime that stays an EWSDateTime through arithmetic and timezone conversion. Set the timezone with
    EWSTimeZone.localize(), not with the 'tzinfo' argument, or DST is not applied.
    """

    __slots__ = '_year', '_month', '_day', '_hour', '_minute', '_second', '_microsecond', '_tzinfo', '_hashcode'

    def __new__(cls, *args, **kwargs):
        tzinfo = kwargs.get('tzinfo')
        if tzinfo is not None and not isinstance(tzinfo, EWSTimeZone):
            raise ValueError('tzinfo must be an EWSTimeZone instance')
        return super().__new__(cls, *args, **kwargs)

    def ewsformat(self):
        """xs:dateTime as EWS wants it. UTC values get a 'Z' suffix, other values an offset:
            2009-01-15T13:45:56Z
            2009-01-15T13:45:56+01:00
        """
        if not self.tzinfo:
            raise ValueError('EWSDateTime must be timezone-aware')
        if self.tzinfo.zone == 'UTC':
            return self.strftime('%Y-%m-%dT%H:%M:%SZ')
        return self.replace(microsecond=0).isoformat()

    @classmethod
    def from_datetime(cls, d):
        if isinstance(d, cls):
            return d
        if type(d) is not datetime.datetime:
            raise ValueError("%r must be a datetime instance" % d)
        tz = d.tzinfo
        if tz is not None and not isinstance(tz, EWSTimeZone):
            tz = EWSTimeZone.from_pytz(tz)
        return cls(d.year, d.month, d.day, d.hour, d.minute, d.second, d.microsecond, tzinfo=tz)

    def astimezone(self, tz=None):
        return self.from_datetime(super().astimezone(tz=tz))

    def __add__(self, other):
        return self.from_datetime(super().__add__(other))

    def __sub__(self, other):
        res = super().__sub__(other)
        return res if isinstance(res, datetime.timedelta) else self.from_datetime(res)

    @classmethod
    def from_string(cls, date_string):
        """Parses xs:dateTime to an aware value in UTC. Naive values raise NaiveDateTimeNotAllowed, carrying the
        parsed value, so the caller can decide which timezone to assume.
        """
        dt = dateutil.parser.isoparse(date_string)
        if dt.tzinfo is None:
            raise NaiveDateTimeNotAllowed(dt)
        return cls.from_datetime(dt.astimezone(pytz.utc))

    @classmethod
    def now(cls, tz=None):
        return cls.from_datetime(super().now(tz=tz))

    def date(self):
        return EWSDate.from_date(super().date())


class EWSTimeZone:
    """A pytz timezone with the matching Windows timezone ID in 'ms_id'. Create instances with timezone(),
    from_ms_id(), from_pytz() or localzone().

    Windows timezones are coarser than the IANA ones, so equality only compares 'ms_id'.
    """
    PYTZ_TO_MS_MAP = PYTZ_TO_MS_TIMEZONE_MAP
    MS_TO_PYTZ_MAP = MS_TIMEZONE_TO_PYTZ_MAP

    def __eq__(self, other):
        if not isinstance(other, EWSTimeZone):
            return NotImplemented
        return self.ms_id == other.ms_id

    def __hash__(self):
        return hash(self.ms_id)

    @classmethod
    def from_ms_id(cls, ms_id):
        """Lossy, because one Windows ID covers many IANA zones"""
        location = cls.MS_TO_PYTZ_MAP.get(ms_id)
        if location is None:
            if '/' not in ms_id:
                raise UnknownTimeZone("Windows timezone ID '%s' is unknown by CLDR" % ms_id)
            # Some servers return IANA names, e.g. 'Europe/Copenhagen'
            location = ms_id
        return cls.timezone(location)

    @classmethod
    def from_pytz(cls, tz):
        # pytz creates a class per timezone. Build a subclass of both that class and ours, with the same state.
        tz_cls = tz.__class__
        bases = (cls,) if tz_cls is cls else (cls, tz_cls)
        ms_id = cls.PYTZ_TO_MS_MAP.get(tz.zone)
        if ms_id is None:
            raise UnknownTimeZone('No Windows timezone name found for timezone "%s"' % tz.zone)
        attrs = dict(tz_cls.__dict__)
        # EWS accepts an empty long-format name
        attrs.update(ms_id=ms_id, ms_name='')
        self = type(cls.__name__, bases, attrs)()
        self.__dict__.update(tz.__dict__)
        return self

    @classmethod
    def localzone(cls):
        if hasattr(tzlocal, 'get_localzone_name'):
            # tzlocal 3+ returns zoneinfo objects
            return cls.timezone(tzlocal.get_localzone_name())
        try:
            return cls.from_pytz(tzlocal.get_localzone())
        except pytz.exceptions.UnknownTimeZoneError:
            raise UnknownTimeZone("Failed to guess local timezone")

    @classmethod
    def timezone(cls, location):
        """pytz.timezone(), returning an EWSTimeZone"""
        try:
            return cls.from_pytz(pytz.timezone(location))
        except pytz.exceptions.UnknownTimeZoneError:
            raise UnknownTimeZone("Timezone '%s' is unknown by pytz" % location)

    def _wrap(self, dt):
        # pytz sets its own tzinfo classes on localized values
        if not isinstance(dt.tzinfo, EWSTimeZone):
            dt = dt.replace(tzinfo=self.from_pytz(dt.tzinfo))
        return EWSDateTime.from_datetime(dt)

    def localize(self, dt, is_dst=False):
        """Attaches this timezone to a naive datetime. 'is_dst=None' raises on ambiguous and non-existent times."""
        if is_dst is False:
            # Static pytz timezones don't take 'is_dst'
            return self._wrap(super().localize(dt))
        try:
            return self._wrap(super().localize(dt, is_dst=is_dst))
        except pytz.exceptions.AmbiguousTimeError:
            raise AmbiguousTimeError(str(dt))
        except pytz.exceptions.NonExistentTimeError:
            raise NonExistentTimeError(str(dt))

    def normalize(self, dt):
        return self._wrap(super().normalize(dt))

    def fromutc(self, dt):
        return EWSDateTime.from_datetime(super().fromutc(dt))


UTC = EWSTimeZone.timezone('UTC')


def UTC_NOW():
    return EWSDateTime.now(tz=UTC)
