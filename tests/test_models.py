"""
Tests for modcsv.models module
"""
import unittest
import sys
import os

# Add parent directory to path to import modcsv
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from modcsv.exceptions import FatalConfigError
from modcsv.models import (
    ParameterSpec, SimulationSpec,
    validate_parameter, validate_params, validate_simulation, overlapping_parameters,
)


class TestParameterSpec(unittest.TestCase):
    """Test cases for ParameterSpec"""

    def test_coil_forces_bool(self):
        """Test a coil is always a single unswapped bool"""
        param = ParameterSpec(reg_address=3, reg_type='coil', byte_swap=True, value_type='float64')
        self.assertEqual(param.value_type, 'bool')
        self.assertFalse(param.byte_swap)
        self.assertEqual(param.width, 1)

    def test_discrete_forces_bool(self):
        param = ParameterSpec(reg_type='discrete', value_type='int32')
        self.assertEqual(param.value_type, 'bool')
        self.assertEqual(param.width, 1)

    def test_holding_keeps_type(self):
        param = ParameterSpec(reg_type='holding', byte_swap=True, value_type='float64')
        self.assertEqual(param.value_type, 'float64')
        self.assertEqual(param.byte_order, '<')
        self.assertEqual(param.width, 4)
        self.assertEqual(param.end_address, 4)


class TestValidation(unittest.TestCase):
    """Test cases for parameter and simulation validation"""

    def test_unknown_value_type_defaults_to_float32(self):
        with self.assertLogs('modcsv.models', level='WARNING') as logs:
            param = validate_parameter(ParameterSpec(reg_type='input', value_type='decimal'))
        self.assertEqual(param.value_type, 'float32')
        self.assertIn('decimal', logs.output[0])

    def test_unknown_register_type_is_not_writable(self):
        with self.assertLogs('modcsv.models', level='WARNING'):
            param = validate_parameter(ParameterSpec(reg_type='eeprom', value_type='int16'))
        self.assertFalse(param.writable)
        self.assertEqual(param.value_type, 'float32')

    def test_register_address_range(self):
        with self.assertRaises(FatalConfigError):
            validate_parameter(ParameterSpec(reg_address=70000))
        with self.assertRaises(FatalConfigError):
            validate_parameter(ParameterSpec(reg_address=-1))

    def test_value_must_fit_below_65536(self):
        """Test a multi-register value may not run past the last address"""
        with self.assertRaises(FatalConfigError):
            validate_parameter(ParameterSpec(reg_address=0xFFFF, value_type='float64'))
        with self.assertRaises(FatalConfigError):
            validate_parameter(ParameterSpec(reg_address=0xFFFE, value_type='int32', reg_type='input'))
        self.assertEqual(
            validate_parameter(ParameterSpec(reg_address=0xFFFC, value_type='float64')).end_address,
            0x10000,
        )
        self.assertEqual(validate_parameter(ParameterSpec(reg_address=0xFFFF, reg_type='coil')).width, 1)

    def test_missing_rate_clamped(self):
        for rate in (1.0, -0.1, 2.5):
            with self.assertLogs('modcsv.models', level='WARNING'):
                spec = validate_simulation(SimulationSpec('a.csv', missing_rate=rate))
            self.assertEqual(spec.missing_rate, 0.0)

    def test_missing_rate_kept(self):
        spec = validate_simulation(SimulationSpec('a.csv', missing_rate=0.3))
        self.assertEqual(spec.missing_rate, 0.3)

    def test_negative_timestep_unset(self):
        with self.assertLogs('modcsv.models', level='WARNING'):
            spec = validate_simulation(SimulationSpec('a.csv', timestep=-5))
        self.assertEqual(spec.timestep, 0)

    def test_invalid_port(self):
        with self.assertRaises(FatalConfigError):
            validate_simulation(SimulationSpec('a.csv', port=70000))

    def test_address_error_names_file(self):
        spec = SimulationSpec('plant.csv', params=[ParameterSpec(reg_address=0x10000)])
        with self.assertRaises(FatalConfigError) as ctx:
            validate_simulation(spec)
        self.assertIn('plant.csv', str(ctx.exception))


class TestOverlaps(unittest.TestCase):
    """Test cases for overlapping parameter detection"""

    def test_overlap_in_same_table(self):
        params = [
            ParameterSpec(reg_address=0, value_type='float32'),
            ParameterSpec(reg_address=1, value_type='int16'),
            ParameterSpec(reg_address=2, value_type='int16'),
        ]
        self.assertEqual(overlapping_parameters(params), [(0, 1)])

    def test_different_tables_do_not_overlap(self):
        params = [
            ParameterSpec(reg_address=0, reg_type='holding', value_type='float32'),
            ParameterSpec(reg_address=0, reg_type='input', value_type='float32'),
        ]
        self.assertEqual(overlapping_parameters(params), [])

    def test_overlap_is_only_a_warning(self):
        params = [ParameterSpec(reg_address=0), ParameterSpec(reg_address=0)]
        with self.assertLogs('modcsv.models', level='WARNING'):
            validated = validate_params(params)
        self.assertEqual(len(validated), 2)


if __name__ == '__main__':
    unittest.main()
