import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, empty, has_item, contains_string

from groundlink.telemetry.packets import PacketParser, PACKET_TYPES, AIRCRAFT_POSITION, AIRCRAFT_ORIENTATION

packet_types = {
    'position': ('lat', 'lon', 'alt'),
    'orientation': ('pitch', 'roll'),
    'gains': ('roll_kp', 'lat'),
}


class PacketParserTest(unittest.TestCase):

    def setUp(self):
        self.log = Mock()
        self.sut = PacketParser(packet_types, log=self.log)

    def test_required_headers(self):
        assert_that(self.sut.required_headers(), is_(['lat', 'lon', 'alt', 'pitch', 'roll', 'roll_kp']))

    def test_nothing_missing(self):
        assert_that(self.sut.check_for_missing_headers(['roll_kp', 'lat', 'lon', 'alt', 'pitch', 'roll', 'extra']),
                    is_(empty()))
        self.log.warning.assert_not_called()

    def test_missing_headers_warn(self):
        missing = self.sut.check_for_missing_headers(['lat', 'lon'])
        assert_that(missing, is_(['alt', 'pitch', 'roll', 'roll_kp']))
        self.log.warning.assert_called_once()
        assert_that(self.log.warning.call_args[0][0], contains_string('alt, pitch, roll, roll_kp'))

    def test_duplicate_headers_warn(self):
        self.sut.check_for_missing_headers(['lat', 'lon', 'alt', 'pitch', 'roll', 'roll_kp', 'lat'])
        self.log.warning.assert_called_once()
        assert_that(self.log.warning.call_args[0][0], contains_string('repeat fields'))

    def test_parse_packets(self):
        state = {'lat': 45.5, 'lon': -80.2, 'pitch': 3, 'unused': 'x'}
        packets = self.sut.parse_packets(state)
        assert_that(list(packets.keys()), is_(['position', 'orientation', 'gains']))
        assert_that(packets['position'], is_({'lat': 45.5, 'lon': -80.2}))
        assert_that(packets['orientation'], is_({'pitch': 3}))
        assert_that(packets['gains'], is_({'lat': 45.5}))

    def test_parse_empty_state(self):
        packets = self.sut.parse_packets({})
        assert_that(list(packets.values()), is_([{}, {}, {}]))


class DefaultPacketTypesTest(unittest.TestCase):

    def test_categories(self):
        assert_that(list(PACKET_TYPES.keys()), is_(['aircraft_position', 'aircraft_orientation', 'aircraft_gains',
                                                    'aircraft_status', 'aircraft_channels']))

    def test_position_and_orientation_fields(self):
        assert_that(PACKET_TYPES[AIRCRAFT_POSITION], has_item('lat'))
        assert_that(PACKET_TYPES[AIRCRAFT_ORIENTATION], has_item('roll'))

    def test_default_parser(self):
        sut = PacketParser()
        assert_that(sut.required_headers(), has_item('ch8_out'))
