"""
The packet categories sent by the data relay, and the fields belonging to each. A flight state is
sliced into one payload per category, each published as an event named after the category.
"""
import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)

AIRCRAFT_POSITION = 'aircraft_position'
AIRCRAFT_ORIENTATION = 'aircraft_orientation'
AIRCRAFT_GAINS = 'aircraft_gains'
AIRCRAFT_STATUS = 'aircraft_status'
AIRCRAFT_CHANNELS = 'aircraft_channels'

PACKET_TYPES = OrderedDict([
    (AIRCRAFT_POSITION, ('lat', 'lon', 'time', 'altitude', 'heading', 'ground_speed', 'airspeed')),
    (AIRCRAFT_ORIENTATION, ('pitch', 'roll', 'yaw', 'pitch_rate', 'roll_rate', 'yaw_rate')),
    (AIRCRAFT_GAINS, ('roll_kp', 'roll_ki', 'roll_kd', 'pitch_kp', 'pitch_ki', 'pitch_kd',
                      'yaw_kp', 'yaw_ki', 'yaw_kd', 'heading_kp', 'heading_ki', 'altitude_kp', 'altitude_ki',
                      'throttle_kp', 'throttle_ki')),
    (AIRCRAFT_STATUS, ('battery_level', 'wireless_connection', 'autopilot_active', 'gps_status',
                       'waypoint_index', 'waypoint_count', 'path_checksum', 'last_command_sent',
                       'startup_error_codes')),
    (AIRCRAFT_CHANNELS, tuple(['ch%d_in' % i for i in range(1, 9)] + ['ch%d_out' % i for i in range(1, 9)])),
])


class PacketParser:
    """
    Checks received headers against the known packet types, and slices flight states into packets.

    :param packet_types: an ordered mapping from packet name to the names of its fields
    """

    def __init__(self, packet_types=PACKET_TYPES, log=logger):
        self.packet_types = OrderedDict(packet_types)
        self.logger = log

    def required_headers(self):
        """ the fields used by all packet types, in order of first appearance """
        headers = []
        for fields in self.packet_types.values():
            headers.extend(f for f in fields if f not in headers)
        return headers

    @staticmethod
    def find_duplicate_headers(headers):
        """
        >>> PacketParser.find_duplicate_headers(['lat', 'lon', 'lat', 'alt', 'lat'])
        ['lat']
        """
        seen = set()
        duplicates = []
        for h in headers:
            if h in seen and h not in duplicates:
                duplicates.append(h)
            seen.add(h)
        return duplicates

    def check_for_missing_headers(self, headers):
        """
        Warns about fields required by the packet types that are not in the headers, and about duplicated
        header names (later columns replace earlier ones when decoding). Never raises.
        :return: the missing field names
        """
        present = set(headers)
        missing = [h for h in self.required_headers() if h not in present]
        if missing:
            self.logger.warning("the data relay headers are missing fields: %s" % ", ".join(missing))
        duplicates = self.find_duplicate_headers(headers)
        if duplicates:
            self.logger.warning("the data relay headers repeat fields, the last column is used: %s"
                                % ", ".join(duplicates))
        return missing

    def parse_packets(self, state):
        """
        Slices a flight state into packets.
        :return: an ordered mapping from packet name to a dictionary of the packet fields present in the state
        """
        return OrderedDict((name, {f: state[f] for f in fields if f in state})
                           for name, fields in self.packet_types.items())
