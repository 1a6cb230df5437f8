"""
Tests for the modcsv command line
"""
import unittest
from unittest.mock import patch, AsyncMock
import tempfile
import sys
import os

# Add parent directory to path to import modcsv
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from modcsv.__main__ import build_parser, main

from util import write_csv, write_bytes


class TestParser(unittest.TestCase):
    """Test cases for argument parsing"""

    def test_serve_defaults(self):
        args = build_parser().parse_args(['serve'])
        self.assertEqual(args.timestep, 1.0)
        self.assertIsNone(args.files)
        self.assertIsNone(args.api_port)

    def test_serve_flags(self):
        args = build_parser().parse_args(['serve', '-t', '5', '-T', '0.5', '-F', 'a.csv', 'b.csv'])
        self.assertEqual(args.timestep, 5.0)
        self.assertEqual(args.timeout, 0.5)
        self.assertEqual(args.files, ['a.csv', 'b.csv'])

    def test_rejects_zero_timestep(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args(['serve', '-t', '0'])


class TestMain(unittest.TestCase):
    """Test cases for main"""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.cwd = os.getcwd()
        os.chdir(self.tmpdir.name)
        self.config = os.path.join(self.tmpdir.name, 'config.yaml')

    def tearDown(self):
        os.chdir(self.cwd)
        self.tmpdir.cleanup()

    def run_main(self, argv):
        with self.assertRaises(SystemExit) as ctx:
            main(argv)
        return ctx.exception.code

    def test_init_writes_config(self):
        write_csv(self.tmpdir.name, 'plant.csv', [[1, 2]])
        self.assertEqual(self.run_main(['init', '-c', self.config]), 0)
        self.assertTrue(os.path.exists(self.config))
        # Refuses to overwrite
        self.assertEqual(self.run_main(['init', '-c', self.config]), 1)
        self.assertEqual(self.run_main(['init', '-c', self.config, '--force']), 0)

    def test_init_without_csv(self):
        self.assertEqual(self.run_main(['init', '-c', self.config]), 1)

    @patch('modcsv.__main__.run_simulation', new_callable=AsyncMock)
    def test_serve_is_default_command(self, mock_run):
        """Test flags without a command run serve and exit 0 after termination"""
        write_csv(self.tmpdir.name, 'plant.csv', [[1]])
        self.assertEqual(self.run_main(['-c', self.config, '-t', '2']), 0)
        mock_run.assert_awaited_once()
        units, plan, args = mock_run.await_args.args
        self.assertEqual(len(units), 1)
        self.assertEqual(plan.base_tick, 2.0)
        units[0].source.close()

    def test_serve_fatal_config(self):
        """Test a column count mismatch exits 1 before serving"""
        write_csv(self.tmpdir.name, 'plant.csv', [[1, 2]])
        with open(self.config, 'w') as f:
            f.write("servers:\n  - filename: plant.csv\n    port: 5020\n    params:\n      - regaddress: 0\n")
        with patch('modcsv.__main__.run_simulation', new_callable=AsyncMock) as mock_run:
            self.assertEqual(self.run_main(['serve', '-c', self.config]), 1)
            mock_run.assert_not_called()

    def test_serve_no_matching_files(self):
        write_csv(self.tmpdir.name, 'plant.csv', [[1]])
        self.assertEqual(self.run_main(['serve', '-c', self.config, '-F', 'other.csv']), 1)

    @patch('modcsv.__main__.api_available', return_value=False)
    @patch('modcsv.__main__.run_simulation', new_callable=AsyncMock)
    def test_serve_api_without_flask(self, mock_run, mock_available):
        write_csv(self.tmpdir.name, 'plant.csv', [[1]])
        self.assertEqual(self.run_main(['serve', '-c', self.config, '--api-port', '8080']), 1)
        mock_run.assert_not_called()

    def test_serve_undecodable_csv(self):
        """Test a CSV file that is not UTF-8 exits 1 instead of raising"""
        write_bytes(self.tmpdir.name, 'plant.csv', b'\xff\xfe1\n')
        with patch('modcsv.__main__.run_simulation', new_callable=AsyncMock) as mock_run:
            self.assertEqual(self.run_main(['serve', '-c', self.config]), 1)
            mock_run.assert_not_called()

    @patch('modcsv.__main__.run_simulation', new_callable=AsyncMock)
    def test_serve_runtime_failure(self, mock_run):
        mock_run.side_effect = OSError('disk gone')
        write_csv(self.tmpdir.name, 'plant.csv', [[1]])
        self.assertEqual(self.run_main(['serve', '-c', self.config]), 1)


if __name__ == '__main__':
    unittest.main()
