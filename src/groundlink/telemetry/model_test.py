import unittest
from unittest.mock import Mock, call

from hamcrest import assert_that, is_, empty, equal_to, calling, raises, contains_exactly

from groundlink.config.config import LinkConfig
from groundlink.telemetry.model import TelemetryData, FlightState, ReceivedFrame, ColumnMismatch, parse_value, \
    COLUMN_MISMATCH, DEFAULT_MAX_LISTENERS
from groundlink.telemetry.packets import PacketParser


class ParseValueTest(unittest.TestCase):

    def test_numbers(self):
        assert_that(parse_value('120'), is_(120))
        assert_that(parse_value(' 45.5'), is_(45.5))
        assert_that(parse_value('1e3'), is_(1000.0))

    def test_text_is_kept(self):
        assert_that(parse_value(' nan?'), is_('nan?'))
        assert_that(parse_value(''), is_(''))

    def test_digit_separators_are_not_numbers(self):
        assert_that(parse_value('1_2'), is_('1_2'))
        assert_that(parse_value(' 1_000.5 '), is_('1_000.5'))


class FlightStateTest(unittest.TestCase):

    def test_equal_to_dict(self):
        sut = FlightState({'lat': 45.5, 'lon': -80.2}, time=12)
        assert_that(sut, is_(equal_to({'lat': 45.5, 'lon': -80.2})))
        assert_that(sut.time, is_(12))
        assert_that(len(sut), is_(2))

    def test_immutable(self):
        values = {'lat': 45.5}
        sut = FlightState(values)
        values['lat'] = 0

        def assign():
            sut['lat'] = 1

        assert_that(calling(assign), raises(TypeError))
        assert_that(sut['lat'], is_(45.5))


class TelemetryHeadersTest(unittest.TestCase):

    def setUp(self):
        self.sut = TelemetryData()

    def test_headers_are_trimmed(self):
        assert_that(self.sut.set_headers_from_string('a, b ,c'), is_(['a', 'b', 'c']))
        assert_that(self.sut.get_headers(), is_(['a', 'b', 'c']))

    def test_headers_are_replaced(self):
        self.sut.set_headers_from_string('a,b')
        self.sut.set_headers_from_string('c')
        assert_that(self.sut.headers, is_(['c']))

    def test_header_frame_is_recorded(self):
        sut = TelemetryData(current_time=lambda: 5.0)
        sut.set_headers_from_string('lat, lon')
        assert_that(sut.received, is_([ReceivedFrame(5.0, 'lat, lon')]))

    def test_default_max_listeners(self):
        assert_that(self.sut.max_listeners, is_(DEFAULT_MAX_LISTENERS))
        assert_that(LinkConfig().telemetrydata_max_listeners, is_(DEFAULT_MAX_LISTENERS))

    def test_clear_headers(self):
        self.sut.set_headers_from_string('a,b')
        self.sut.clear_headers()
        assert_that(self.sut.headers, is_(empty()))


class TelemetryStateTest(unittest.TestCase):

    def setUp(self):
        self.log = Mock()
        self.sut = TelemetryData(current_time=lambda: 1000.0, log=self.log)
        self.sut.set_headers_from_string('lat,lon,alt')

    def test_decode_state(self):
        state = self.sut.set_current_state_from_string('45.5,-80.2,120')
        assert_that(state, is_(equal_to({'lat': 45.5, 'lon': -80.2, 'alt': 120})))
        assert_that(self.sut.current_state, is_(state))
        assert_that(self.sut.get_current_state(), is_(state))
        assert_that(self.sut.state_history, contains_exactly(state))
        assert_that(self.sut.received, is_([ReceivedFrame(1000.0, 'lat,lon,alt'),
                                            ReceivedFrame(1000.0, '45.5,-80.2,120')]))

    def test_decode_is_pure(self):
        state = self.sut.decode_state('45.5,-80.2,120')
        assert_that(state, is_(equal_to({'lat': 45.5, 'lon': -80.2, 'alt': 120})))
        assert_that(self.sut.state_history, is_(empty()))
        assert_that(self.sut.received, is_([ReceivedFrame(1000.0, 'lat,lon,alt')]))
        assert_that(self.sut.current_state, is_(equal_to({})))

    def test_decode_with_given_headers(self):
        assert_that(self.sut.decode_state('1,2', headers=['x', 'y']), is_(equal_to({'x': 1, 'y': 2})))

    def test_history_accumulates(self):
        self.sut.set_current_state_from_string('1,2,3')
        self.sut.set_current_state_from_string('4,5,6')
        assert_that([dict(s) for s in self.sut.state_history],
                    is_([{'lat': 1, 'lon': 2, 'alt': 3}, {'lat': 4, 'lon': 5, 'alt': 6}]))
        assert_that(self.sut.current_state, is_(equal_to({'lat': 4, 'lon': 5, 'alt': 6})))

    def test_fewer_values_than_headers(self):
        mismatch = Mock()
        self.sut.on(COLUMN_MISMATCH, mismatch)
        state = self.sut.set_current_state_from_string('45.5,-80.2')
        assert_that(state, is_(equal_to({'lat': 45.5, 'lon': -80.2})))
        self.log.warning.assert_called_once()
        mismatch.assert_called_once_with(ColumnMismatch(['lat', 'lon', 'alt'], ['45.5', '-80.2']))
        assert_that(mismatch.call_args[0][0].dropped, is_(['alt']))

    def test_more_values_than_headers(self):
        state = self.sut.set_current_state_from_string('1,2,3,4')
        assert_that(state, is_(equal_to({'lat': 1, 'lon': 2, 'alt': 3})))
        assert_that(ColumnMismatch(['a'], ['1', '2']).dropped, is_(['2']))

    def test_matching_counts_are_not_reported(self):
        self.sut.set_current_state_from_string('1,2,3')
        self.log.warning.assert_not_called()

    def test_duplicate_headers_shadow(self):
        self.sut.set_headers_from_string('lat,lon,lat')
        assert_that(self.sut.decode_state('1,2,3'), is_(equal_to({'lat': 3, 'lon': 2})))

    def test_malformed_values_are_stored(self):
        state = self.sut.set_current_state_from_string('abc,,NaN')
        assert_that(state['lat'], is_('abc'))
        assert_that(state['lon'], is_(''))

    def test_new_epoch(self):
        self.sut.set_current_state_from_string('1,2,3')
        self.sut.record_sent('set_heading:90')
        self.sut.new_epoch()
        assert_that(self.sut.headers, is_(empty()))
        assert_that(self.sut.received, is_(empty()))
        assert_that(self.sut.state_history, is_(empty()))
        assert_that(self.sut.sent, is_(empty()))
        assert_that(self.sut.current_state, is_(equal_to({})))

    def test_record_sent(self):
        self.sut.record_sent(b'set_heading:90\r\n')
        assert_that(self.sut.sent, is_([ReceivedFrame(1000.0, b'set_heading:90\r\n')]))


class TelemetryEventsTest(unittest.TestCase):

    def setUp(self):
        self.log = Mock()
        self.sut = TelemetryData(max_listeners=2, log=self.log)

    def test_emit_packets_by_category(self):
        position = Mock()
        position2 = Mock()
        orientation = Mock()
        self.sut.on('position', position)
        self.sut.on('position', position2)
        self.sut.on('orientation', orientation)
        self.sut.emit_packets({'position': {'p': 1}})
        position.assert_called_once_with({'p': 1})
        position2.assert_called_once_with({'p': 1})
        orientation.assert_not_called()

    def test_emit_in_packet_order(self):
        manager = Mock()
        self.sut.on('a', manager.a)
        self.sut.on('b', manager.b)
        self.sut.emit_packets({'b': {'x': 1}, 'a': {'y': 2}})
        assert_that(manager.mock_calls, is_([call.b({'x': 1}), call.a({'y': 2})]))

    def test_payload_is_read_only(self):
        received = []
        self.sut.on('position', received.append)
        payload = {'p': 1}
        self.sut.emit('position', payload)

        def mutate():
            received[0]['p'] = 2

        assert_that(calling(mutate), raises(TypeError))
        assert_that(payload, is_({'p': 1}))

    def test_late_listener_does_not_receive_earlier_packets(self):
        self.sut.emit_packets({'position': {'p': 1}})
        late = Mock()
        self.sut.on('position', late)
        late.assert_not_called()

    def test_emit_without_listeners(self):
        assert_that(self.sut.emit('position', {'p': 1}), is_(False))

    def test_failing_listener_is_isolated(self):
        second = Mock()
        self.sut.on('position', Mock(side_effect=RuntimeError("map not ready")))
        self.sut.on('position', second)
        assert_that(self.sut.emit('position', {'p': 1}), is_(True))
        second.assert_called_once_with({'p': 1})
        self.log.exception.assert_called_once()

    def test_remove_listener(self):
        listener = Mock()
        self.sut.on('position', listener)
        self.sut.remove_listener('position', listener)
        self.sut.remove_listener('unknown', listener)
        assert_that(self.sut.listener_count('position'), is_(0))
        self.sut.emit('position', {'p': 1})
        listener.assert_not_called()

    def test_max_listeners_warns(self):
        for _ in range(2):
            self.sut.on('position', Mock())
        self.log.warning.assert_not_called()
        self.sut.on('position', Mock())
        self.log.warning.assert_called_once()
        assert_that(self.sut.listener_count('position'), is_(3))

    def test_packets_for_current_state(self):
        sut = TelemetryData(packet_parser=PacketParser({'position': ('lat', 'lon'), 'orientation': ('roll',)}))
        sut.set_headers_from_string('lat,lon,roll')
        sut.set_current_state_from_string('45.5,-80.2,3')
        assert_that(sut.packets_for(), is_({'position': {'lat': 45.5, 'lon': -80.2}, 'orientation': {'roll': 3}}))
        assert_that(sut.packets_for({'roll': 1}), is_({'position': {}, 'orientation': {'roll': 1}}))

    def test_flight_state_is_published_as_is(self):
        received = []
        self.sut.on('data_received', received.append)
        state = FlightState({'lat': 45.5}, time=3)
        self.sut.emit('data_received', state)
        assert_that(received[0], is_(state))
        assert_that(received[0].time, is_(3))
