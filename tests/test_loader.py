"""
Tests for modcsv.loader module
"""
import unittest
import tempfile
import sys
import os

import yaml

# Add parent directory to path to import modcsv
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from modcsv.exceptions import FatalConfigError
from modcsv.loader import (
    load_config, save_config, create_default_config, load_or_create_config,
    select_files, find_by_ext, simulation_from_dict,
)
from modcsv.models import SimulationSpec

from util import write_csv

CONFIG_YAML = """
servers:
  - filename: plant.csv
    port: 5020
    SlaveId: 3
    has_header: true
    hasindex: false
    missingrate: 0.25
    timestep: 10
    params:
      - regaddress: 4
        regtype: input
        byteswap: true
        valuetype: float32
      - RegAddress: 8
        RegType: coil
"""


class TestLoadConfig(unittest.TestCase):
    """Test cases for YAML configuration loading"""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, 'config.yaml')

    def tearDown(self):
        self.tmpdir.cleanup()

    def write(self, text):
        with open(self.path, 'w') as f:
            f.write(text)

    def test_load(self):
        """Test keys are matched regardless of case and underscores"""
        self.write(CONFIG_YAML)
        specs = load_config(self.path)

        self.assertEqual(len(specs), 1)
        spec = specs[0]
        self.assertEqual(spec.filename, 'plant.csv')
        self.assertEqual(spec.port, 5020)
        self.assertEqual(spec.slave_id, 3)
        self.assertTrue(spec.has_header)
        self.assertFalse(spec.has_index)
        self.assertEqual(spec.missing_rate, 0.25)
        self.assertEqual(spec.timestep, 10)
        self.assertEqual(spec.params[0].reg_address, 4)
        self.assertEqual(spec.params[0].reg_type, 'input')
        self.assertTrue(spec.params[0].byte_swap)
        self.assertEqual(spec.params[1].reg_type, 'coil')
        self.assertEqual(spec.params[1].value_type, 'bool')

    def test_missing_servers(self):
        self.write("other: 1\n")
        with self.assertRaises(FatalConfigError):
            load_config(self.path)

    def test_malformed_yaml(self):
        self.write("servers: [unclosed\n")
        with self.assertRaises(FatalConfigError):
            load_config(self.path)

    def test_entry_without_filename(self):
        with self.assertRaises(FatalConfigError):
            simulation_from_dict({'port': 1})

    def test_bad_number(self):
        with self.assertRaises(FatalConfigError):
            simulation_from_dict({'filename': 'a.csv', 'port': 'fifty'})

    def test_save_does_not_overwrite(self):
        specs = [SimulationSpec('a.csv', port=5000)]
        self.assertTrue(save_config(specs, self.path))
        self.assertFalse(save_config([], self.path))
        self.assertEqual(load_config(self.path)[0].filename, 'a.csv')

    def test_saved_keys(self):
        save_config([SimulationSpec('a.csv')], self.path)
        with open(self.path) as f:
            document = yaml.safe_load(f)
        self.assertEqual(
            sorted(document['servers'][0]),
            sorted(['filename', 'port', 'slaveid', 'hasheader', 'hasindex',
                    'missingrate', 'timestep', 'params'])
        )


class TestDefaultConfig(unittest.TestCase):
    """Test cases for default configuration generation"""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = self.tmpdir.name

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_one_server_per_csv(self):
        write_csv(self.root, 'b.csv', [[1, 2, 3]])
        write_csv(self.root, 'a.csv', [[1]])
        write_csv(self.root, 'notes.txt', [['x']])

        specs = create_default_config(self.root)

        self.assertEqual([os.path.basename(s.filename) for s in specs], ['a.csv', 'b.csv'])
        self.assertEqual([s.port for s in specs], [5000, 5001])
        self.assertEqual([len(s.params) for s in specs], [1, 3])
        self.assertEqual([p.reg_address for p in specs[1].params], [0, 1, 2])
        self.assertTrue(all(p.reg_type == 'holding' and p.value_type == 'int16'
                            for p in specs[1].params))

    def test_empty_csv_skipped(self):
        write_csv(self.root, 'empty.csv', [])
        with self.assertLogs('modcsv.loader', level='WARNING'):
            self.assertEqual(create_default_config(self.root), [])

    def test_not_recursive(self):
        os.mkdir(os.path.join(self.root, 'sub'))
        write_csv(os.path.join(self.root, 'sub'), 'deep.csv', [[1]])
        self.assertEqual(find_by_ext(self.root, '.csv'), [])

    def test_load_or_create_writes_file(self):
        write_csv(self.root, 'a.csv', [[1, 2]])
        path = os.path.join(self.root, 'config.yaml')

        specs = load_or_create_config(path, self.root)

        self.assertTrue(os.path.exists(path))
        self.assertEqual(len(specs[0].params), 2)
        self.assertEqual(load_config(path)[0].port, 5000)


class TestSelectFiles(unittest.TestCase):
    """Test cases for select_files"""

    def setUp(self):
        self.specs = [SimulationSpec('a.csv'), SimulationSpec('b.csv'), SimulationSpec('c.csv')]

    def test_no_filter(self):
        self.assertEqual(select_files(self.specs, None), self.specs)

    def test_filter_skips_unlisted(self):
        """Test unlisted files are skipped without cutting off later ones"""
        selected = select_files(self.specs, ['c.csv'])
        self.assertEqual([s.filename for s in selected], ['c.csv'])

    def test_unknown_file_warns(self):
        with self.assertLogs('modcsv.loader', level='WARNING'):
            selected = select_files(self.specs, ['a.csv', 'zzz.csv'])
        self.assertEqual([s.filename for s in selected], ['a.csv'])


if __name__ == '__main__':
    unittest.main()
