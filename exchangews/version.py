"""
Server versions. A Build is the four-part build number of an Exchange server. A Version pairs a Build with the API
version string sent in the RequestServerVersion SOAP header.

Properties and services declare the first Build that supports them. Before anything is sent, the negotiated Version
is asked whether it supports that Build.
"""
import functools
import logging
import re

from .errors import TransportError
from .util import xml_to_str, TNS

log = logging.getLogger(__name__)

# API version strings, as sent in RequestServerVersion, and the product names they correspond to. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/requestserverversion
VERSIONS = {
    'Exchange2007': 'Microsoft Exchange Server 2007',
    'Exchange2007_SP1': 'Microsoft Exchange Server 2007 SP1',
    'Exchange2010': 'Microsoft Exchange Server 2010',
    'Exchange2010_SP1': 'Microsoft Exchange Server 2010 SP1',
    'Exchange2010_SP2': 'Microsoft Exchange Server 2010 SP2',
    'Exchange2013': 'Microsoft Exchange Server 2013',
    'Exchange2013_SP1': 'Microsoft Exchange Server 2013 SP1',
    'Exchange2016': 'Microsoft Exchange Server 2016',
    'Exchange2019': 'Microsoft Exchange Server 2019',
}

# Oldest first. Used to compare versions when the build is not known.
API_VERSIONS = list(VERSIONS)

# Office 365 sometimes reports version strings like 'V2017_07_11' that it does not accept in requests
_PSEUDO_VERSION_RE = re.compile(r'V[0-9]{1,4}_.*')


@functools.total_ordering
class Build:
    """A server build number, e.g. 15.1.2044.4. Builds are ordered by their four parts."""

    # (major, minor) -> API version. See
    # https://docs.microsoft.com/en-us/exchange/new-features/build-numbers-and-release-dates
    API_VERSION_MAP = {
        (8, 0): 'Exchange2007',
        (8, 1): 'Exchange2007_SP1',
        (8, 2): 'Exchange2007_SP1',
        (8, 3): 'Exchange2007_SP1',
        (14, 0): 'Exchange2010',
        (14, 1): 'Exchange2010_SP1',
        (14, 2): 'Exchange2010_SP2',
        (14, 3): 'Exchange2010_SP2',
        # Major builds from 847 are SP1. See api_version().
        (15, 0): 'Exchange2013',
        (15, 1): 'Exchange2016',
        (15, 2): 'Exchange2019',
        # Office 365
        (15, 20): 'Exchange2016',
    }

    # Attribute names in the ServerVersionInfo element
    XML_ATTRS = (
        ('major_version', 'MajorVersion'),
        ('minor_version', 'MinorVersion'),
        ('major_build', 'MajorBuildNumber'),
        ('minor_build', 'MinorBuildNumber'),
    )

    __slots__ = ('major_version', 'minor_version', 'major_build', 'minor_build')

    def __init__(self, major_version, minor_version, major_build=0, minor_build=0):
        values = (major_version, minor_version, major_build, minor_build)
        for name, value in zip(self.__slots__, values):
            if not isinstance(value, int):
                raise ValueError("'%s' must be an integer" % name)
            setattr(self, name, value)
        if major_version < 8:
            raise ValueError("Exchange major versions below 8 don't support EWS (%s)" % self)

    @classmethod
    def from_xml(cls, elem):
        """Reads the attributes of a ServerVersionInfo element. Raises ValueError on missing or bad values."""
        kwargs = {}
        for name, attr in cls.XML_ATTRS:
            val = elem.get(attr)
            if val is None:
                raise ValueError('Missing attribute %s' % attr)
            kwargs[name] = int(val)
        return cls(**kwargs)

    @classmethod
    def from_hex_string(cls, s):
        """Parses the ServerVersion value of an autodiscover response. It is a 32-bit number. From the most
        significant bit, it holds 4 bits of structure version, 6 bits of major version, 6 bits of minor version, one
        flag bit and 15 bits of major build number.

        See https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/serverversion-pox
        """
        n = int(s, 16)
        return cls(major_version=(n >> 22) & 0x3F, minor_version=(n >> 16) & 0x3F, major_build=n & 0x7FFF)

    def api_version(self):
        if EXCHANGE_2013_SP1 <= self < EXCHANGE_2016:
            return 'Exchange2013_SP1'
        try:
            return self.API_VERSION_MAP[(self.major_version, self.minor_version)]
        except KeyError:
            raise ValueError('API version for build %s is unknown' % self)

    def _key(self):
        return self.major_version, self.minor_version, self.major_build, self.minor_build

    def __eq__(self, other):
        if not isinstance(other, Build):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self):
        return '%s.%s.%s.%s' % self._key()

    def __repr__(self):
        return self.__class__.__name__ + repr(self._key())


# The first build of each Exchange release, for version checks
EXCHANGE_2007 = Build(8, 0)
EXCHANGE_2007_SP1 = Build(8, 1)
EXCHANGE_2010 = Build(14, 0)
EXCHANGE_2010_SP1 = Build(14, 1)
EXCHANGE_2010_SP2 = Build(14, 2)
EXCHANGE_2013 = Build(15, 0)
EXCHANGE_2013_SP1 = Build(15, 0, 847)
EXCHANGE_2016 = Build(15, 1)
EXCHANGE_2019 = Build(15, 2)
EXCHANGE_O365 = Build(15, 20)


class Version:
    """The version of the server we are talking to. 'build' is None when only the API version is known, e.g. before
    the first response from the server.
    """
    __slots__ = ('build', 'api_version')

    def __init__(self, build, api_version=None):
        if build is not None and not isinstance(build, Build):
            raise ValueError("'build' must be a Build instance")
        if api_version is None:
            if build is None:
                raise ValueError("'api_version' is required when 'build' is None")
            api_version = build.api_version()
        elif not isinstance(api_version, str):
            raise ValueError("'api_version' must be a string")
        self.build = build
        self.api_version = api_version

    @property
    def fullname(self):
        return VERSIONS.get(self.api_version, self.api_version)

    def supports(self, build):
        """Whether the server supports what was introduced in 'build'. None means supported by all versions."""
        if build is None:
            return True
        if self.build is not None:
            return self.build >= build
        if self.api_version not in VERSIONS:
            log.debug('Unknown API version %r. Assuming support for build %s', self.api_version, build)
            return True
        return API_VERSIONS.index(self.api_version) >= API_VERSIONS.index(build.api_version())

    @classmethod
    def from_soap_header(cls, requested_api_version, header):
        """The version reported in the ServerVersionInfo element of a SOAP response header. The server may report an
        API version different from the one we requested.
        """
        info = header.find('{%s}ServerVersionInfo' % TNS)
        if info is None:
            raise TransportError('No ServerVersionInfo in header: %r' % xml_to_str(header))
        try:
            build = Build.from_xml(elem=info)
        except ValueError:
            raise TransportError('Bad ServerVersionInfo in response: %r' % xml_to_str(header))
        # Older servers don't send the Version attribute
        api_version = info.get('Version') or build.api_version()
        if api_version != requested_api_version:
            if _PSEUDO_VERSION_RE.match(api_version):
                log.debug('API version "%s" worked but server reports version "%s". Using "%s"', requested_api_version,
                          api_version, requested_api_version)
                api_version = requested_api_version
            else:
                log.info('API version "%s" worked but server reports version "%s". Using "%s"', requested_api_version,
                         api_version, api_version)
        return cls(build=build, api_version=api_version)

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self.api_version == other.api_version and self.build == other.build

    def __hash__(self):
        return hash((self.build, self.api_version))

    def __repr__(self):
        return self.__class__.__name__ + repr((self.build, self.api_version))

    def __str__(self):
        return 'Build=%s, API=%s, Fullname=%s' % (self.build, self.api_version, self.fullname)
