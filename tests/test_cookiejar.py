import os
import tempfile

import pytest

from mshttp.cookiejar import CookieJar


def test_file_created_in_temp_dir():
    with CookieJar() as jar:
        path = jar.file_name()
        assert os.path.exists(path)
        assert os.path.dirname(path) == tempfile.gettempdir()
        assert os.path.basename(path).startswith("cclib")


def test_new_jar_is_empty():
    with CookieJar() as jar:
        assert jar.read() == b""


def test_write_read_round_trip():
    content = b"httpbin.org\tFALSE\t/\tFALSE\t0\tcookie_n1\tcookie_value1\n"
    with CookieJar() as jar:
        jar.write(content)
        assert jar.read() == content
        with open(jar.file_name(), "rb") as handle:
            assert handle.read() == content


def test_write_replaces_previous_content():
    with CookieJar() as jar:
        jar.write(b"a much longer first cookie line\n")
        jar.write(b"short\n")
        assert jar.read() == b"short\n"


def test_close_removes_file():
    jar = CookieJar()
    path = jar.file_name()
    assert jar.is_removed() is False
    jar.close()
    assert jar.is_removed() is True
    assert not os.path.exists(path)


def test_close_twice_is_harmless():
    jar = CookieJar()
    jar.close()
    jar.close()
    assert jar.is_removed() is True


def test_read_after_close_raises():
    jar = CookieJar()
    jar.close()
    with pytest.raises(ValueError):
        jar.read()


def test_jars_use_distinct_files():
    with CookieJar() as first, CookieJar() as second:
        assert first.file_name() != second.file_name()
        first.write(b"one")
        assert second.read() == b""