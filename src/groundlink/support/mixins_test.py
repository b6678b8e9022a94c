import unittest

from hamcrest import equal_to, is_, assert_that, is_not, calling, raises

from groundlink.support.mixins import CommonEqualityMixin, StringerMixin


class Sample(CommonEqualityMixin, StringerMixin):
    def __init__(self, host=None, port=None):
        self.host = host
        self.port = port


class StringerMixinTest(unittest.TestCase):
    def test_stringer(self):
        sut = Sample("10.0.0.7")
        assert_that(str(sut), is_("Sample:{'host': '10.0.0.7', 'port': None}"))


class CommonEqualityMixinTest(unittest.TestCase):

    def test_value_equivalence(self):
        e1 = Sample("10.0.0." + "7", 1234)
        e2 = Sample("10.0.0.7", 1234)
        assert_that(e1, is_(equal_to(e2)))
        assert_that(e1 == e2, is_(True))
        assert_that(e1 != e2, is_(False))

        e1.port = 0
        assert_that(e1, is_not(equal_to(e2)))
        assert_that(e1 != e2, is_(True))

    def test_different_type_is_not_equal(self):
        assert_that(Sample() == object(), is_(False))

    def test_recursive_comparison(self):
        e1 = Sample()
        e2 = Sample()
        e2.host = e1
        e1.host = e2

        def compare():
            return e2 == e1

        assert_that(calling(compare), raises(ValueError))
