from exchangews.version import Build, Version, EXCHANGE_2010, EXCHANGE_2013, EXCHANGE_2013_SP1, EXCHANGE_2016

from .common import TimedTestCase


class BuildTest(TimedTestCase):
    def test_magic(self):
        with self.assertRaises(ValueError):
            Build(7, 0)
        with self.assertRaises(ValueError):
            Build(15, '1')
        self.assertEqual(str(Build(9, 8, 7, 6)), '9.8.7.6')
        self.assertEqual(repr(Build(15, 1)), 'Build(15, 1, 0, 0)')
        self.assertNotEqual(Build(15, 1), (15, 1, 0, 0))

    def test_compare(self):
        build = Build(15, 0, 1, 2)
        self.assertEqual(build, Build(15, 0, 1, 2))
        self.assertEqual(hash(build), hash(Build(15, 0, 1, 2)))
        for bigger in (Build(15, 0, 1, 3), Build(15, 0, 2, 2), Build(15, 1, 1, 2), Build(16, 0, 1, 2)):
            self.assertNotEqual(build, bigger)
            self.assertLess(build, bigger)
            self.assertLessEqual(build, bigger)
            self.assertGreater(bigger, build)
            self.assertGreaterEqual(bigger, build)
        self.assertLessEqual(build, Build(15, 0, 1, 2))
        self.assertGreaterEqual(build, Build(15, 0, 1, 2))

    def test_api_version(self):
        for minor, api_version in ((0, 'Exchange2007'), (1, 'Exchange2007_SP1'), (2, 'Exchange2007_SP1'),
                                   (3, 'Exchange2007_SP1')):
            self.assertEqual(Build(8, minor).api_version(), api_version)
        self.assertEqual(Build(15, 0, 1, 1).api_version(), 'Exchange2013')
        self.assertEqual(EXCHANGE_2013_SP1.api_version(), 'Exchange2013_SP1')
        self.assertEqual(Build(15, 0, 1497).api_version(), 'Exchange2013_SP1')
        self.assertEqual(Build(15, 20, 1).api_version(), 'Exchange2016')
        with self.assertRaises(ValueError):
            Build(16, 0).api_version()
        with self.assertRaises(ValueError):
            Build(15, 4).api_version()

    def test_from_hex_string(self):
        self.assertEqual(Build.from_hex_string('73C18552'), Build(15, 1, 1362))
        self.assertEqual(Build.from_hex_string('738180DA'), Build(14, 1, 218))

    def test_version_supports(self):
        version = Version(build=Build(15, 0, 1, 2))
        self.assertTrue(version.supports(None))
        self.assertTrue(version.supports(EXCHANGE_2010))
        self.assertTrue(version.supports(EXCHANGE_2013))
        self.assertFalse(version.supports(EXCHANGE_2016))
        # Only the API version is known
        version = Version(build=None, api_version='Exchange2013')
        self.assertTrue(version.supports(EXCHANGE_2013))
        self.assertFalse(version.supports(EXCHANGE_2016))
        # Unknown API versions are assumed to be recent
        self.assertTrue(Version(build=None, api_version='V2017_07_11').supports(EXCHANGE_2016))
        with self.assertRaises(ValueError):
            Version(build=None)
