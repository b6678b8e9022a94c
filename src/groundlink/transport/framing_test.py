import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_

from groundlink.transport.framing import FrameBuffer


class FrameBufferTest(unittest.TestCase):

    def test_partial_frame_is_held(self):
        sut = FrameBuffer()
        assert_that(sut.feed(b'lat,lo'), is_([]))
        assert_that(sut.pending, is_(b'lat,lo'))
        assert_that(sut.feed(b'n,alt\n'), is_([b'lat,lon,alt']))
        assert_that(sut.pending, is_(b''))

    def test_several_frames_in_one_chunk(self):
        sut = FrameBuffer()
        assert_that(sut.feed(b'a,b\r\n1,2\r\n3,'), is_([b'a,b', b'1,2']))
        assert_that(sut.pending, is_(b'3,'))

    def test_empty_frames_are_kept(self):
        sut = FrameBuffer()
        assert_that(sut.feed(b'\n\r\n'), is_([b'', b'']))

    def test_multi_byte_delimiter(self):
        sut = FrameBuffer(b'||')
        assert_that(sut.feed(b'a|b||c'), is_([b'a|b']))
        assert_that(sut.pending, is_(b'c'))

    def test_no_delimiter_passes_chunks_through(self):
        sut = FrameBuffer(None)
        assert_that(sut.feed(b'lat,lon\n1,2'), is_([b'lat,lon\n1,2']))
        assert_that(sut.feed(b''), is_([]))

    def test_clear(self):
        sut = FrameBuffer()
        sut.feed(b'abc')
        sut.clear()
        assert_that(sut.pending, is_(b''))

    def test_oversized_frame_is_discarded(self):
        log = Mock()
        sut = FrameBuffer(max_pending=8, log=log)
        assert_that(sut.feed(b'0123456789'), is_([]))
        log.error.assert_called_once()
        assert_that(sut.pending, is_(b''))
        assert_that(sut.feed(b'abc'), is_([]))
        assert_that(sut.feed(b'def\nlat,lon\n'), is_([b'lat,lon']))
        log.error.assert_called_once()

    def test_frame_within_limit_is_kept(self):
        log = Mock()
        sut = FrameBuffer(max_pending=8, log=log)
        assert_that(sut.feed(b'12345678'), is_([]))
        assert_that(sut.feed(b'\n'), is_([b'12345678']))
        log.error.assert_not_called()

    def test_clear_stops_discarding(self):
        sut = FrameBuffer(max_pending=2, log=Mock())
        sut.feed(b'abc')
        sut.clear()
        assert_that(sut.feed(b'x\n'), is_([b'x']))
