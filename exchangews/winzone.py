""" A dict to translate from pytz location name to Windows timezone name. Translations taken from the CLDR
windowsZones.xml table: http://unicode.org/repos/cldr/trunk/common/supplemental/windowsZones.xml

Only the default territory ('001') of each Windows zone is used as the canonical location. Extra locations that map to
the same Windows zone are listed in the reverse map so timezones created from them still get a Windows ID.
"""

MS_TIMEZONE_TO_PYTZ_MAP = {
    'AUS Central Standard Time': 'Australia/Darwin',
    'AUS Eastern Standard Time': 'Australia/Sydney',
    'Afghanistan Standard Time': 'Asia/Kabul',
    'Alaskan Standard Time': 'America/Anchorage',
    'Arab Standard Time': 'Asia/Riyadh',
    'Arabian Standard Time': 'Asia/Dubai',
    'Arabic Standard Time': 'Asia/Baghdad',
    'Argentina Standard Time': 'America/Buenos_Aires',
    'Atlantic Standard Time': 'America/Halifax',
    'Azores Standard Time': 'Atlantic/Azores',
    'Bangladesh Standard Time': 'Asia/Dhaka',
    'Canada Central Standard Time': 'America/Regina',
    'Cape Verde Standard Time': 'Atlantic/Cape_Verde',
    'Cen. Australia Standard Time': 'Australia/Adelaide',
    'Central America Standard Time': 'America/Guatemala',
    'Central Asia Standard Time': 'Asia/Almaty',
    'Central Europe Standard Time': 'Europe/Budapest',
    'Central European Standard Time': 'Europe/Warsaw',
    'Central Pacific Standard Time': 'Pacific/Guadalcanal',
    'Central Standard Time': 'America/Chicago',
    'Central Standard Time (Mexico)': 'America/Mexico_City',
    'China Standard Time': 'Asia/Shanghai',
    'E. Africa Standard Time': 'Africa/Nairobi',
    'E. Australia Standard Time': 'Australia/Brisbane',
    'E. South America Standard Time': 'America/Sao_Paulo',
    'Eastern Standard Time': 'America/New_York',
    'Egypt Standard Time': 'Africa/Cairo',
    'FLE Standard Time': 'Europe/Kiev',
    'GMT Standard Time': 'Europe/London',
    'GTB Standard Time': 'Europe/Bucharest',
    'Greenland Standard Time': 'America/Godthab',
    'Greenwich Standard Time': 'Atlantic/Reykjavik',
    'Hawaiian Standard Time': 'Pacific/Honolulu',
    'India Standard Time': 'Asia/Calcutta',
    'Iran Standard Time': 'Asia/Tehran',
    'Israel Standard Time': 'Asia/Jerusalem',
    'Korea Standard Time': 'Asia/Seoul',
    'Mountain Standard Time': 'America/Denver',
    'Nepal Standard Time': 'Asia/Katmandu',
    'New Zealand Standard Time': 'Pacific/Auckland',
    'Pacific SA Standard Time': 'America/Santiago',
    'Pacific Standard Time': 'America/Los_Angeles',
    'Pakistan Standard Time': 'Asia/Karachi',
    'Romance Standard Time': 'Europe/Paris',
    'Russian Standard Time': 'Europe/Moscow',
    'SA Pacific Standard Time': 'America/Bogota',
    'SE Asia Standard Time': 'Asia/Bangkok',
    'Singapore Standard Time': 'Asia/Singapore',
    'South Africa Standard Time': 'Africa/Johannesburg',
    'Taipei Standard Time': 'Asia/Taipei',
    'Tokyo Standard Time': 'Asia/Tokyo',
    'Turkey Standard Time': 'Europe/Istanbul',
    'US Mountain Standard Time': 'America/Phoenix',
    'UTC': 'UTC',
    'UTC+12': 'Etc/GMT-12',
    'UTC-02': 'Etc/GMT+2',
    'UTC-11': 'Etc/GMT+11',
    'W. Australia Standard Time': 'Australia/Perth',
    'W. Central Africa Standard Time': 'Africa/Lagos',
    'W. Europe Standard Time': 'Europe/Berlin',
    'West Asia Standard Time': 'Asia/Tashkent',
    'West Pacific Standard Time': 'Pacific/Port_Moresby',
}

# Locations that share a Windows zone with a canonical location above
_EXTRA_LOCATIONS = {
    'America/Argentina/Buenos_Aires': 'Argentina Standard Time',
    'America/Nuuk': 'Greenland Standard Time',
    'Asia/Kathmandu': 'Nepal Standard Time',
    'Asia/Kolkata': 'India Standard Time',
    'Asia/Hong_Kong': 'China Standard Time',
    'Etc/GMT': 'UTC',
    'Etc/UTC': 'UTC',
    'Europe/Amsterdam': 'W. Europe Standard Time',
    'Europe/Brussels': 'Romance Standard Time',
    'Europe/Copenhagen': 'Romance Standard Time',
    'Europe/Dublin': 'GMT Standard Time',
    'Europe/Helsinki': 'FLE Standard Time',
    'Europe/Kyiv': 'FLE Standard Time',
    'Europe/Lisbon': 'GMT Standard Time',
    'Europe/Madrid': 'Romance Standard Time',
    'Europe/Oslo': 'W. Europe Standard Time',
    'Europe/Prague': 'Central Europe Standard Time',
    'Europe/Rome': 'W. Europe Standard Time',
    'Europe/Stockholm': 'W. Europe Standard Time',
    'Europe/Vienna': 'W. Europe Standard Time',
    'Europe/Zurich': 'W. Europe Standard Time',
    'GMT': 'UTC',
    'US/Central': 'Central Standard Time',
    'US/Eastern': 'Eastern Standard Time',
    'US/Mountain': 'Mountain Standard Time',
    'US/Pacific': 'Pacific Standard Time',
}

PYTZ_TO_MS_TIMEZONE_MAP = {v: k for k, v in MS_TIMEZONE_TO_PYTZ_MAP.items()}
PYTZ_TO_MS_TIMEZONE_MAP.update(_EXTRA_LOCATIONS)
