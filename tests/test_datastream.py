import base64

import pytest

from mshttp.datastream import (
    DataStreamError,
    DataStreamReader,
    DataStreamWriter,
    ExecutorReply,
    ExecutorRequest,
    StreamType,
)


def _reader(request: ExecutorRequest) -> DataStreamReader:
    return DataStreamReader(base64.b64decode(request.encode()))


def _read_common(reader: DataStreamReader) -> list:
    return [
        reader.read_string(),
        reader.read_string(),
        reader.read_string_hash(),
        reader.read_string_hash(),
        reader.read_int64(),
        reader.read_int64(),
        reader.read_bytes(),
        reader.read_bytes(),
        reader.read_bytes(),
        reader.read_uint8(),
    ]


def test_string_wire_format():
    writer = DataStreamWriter()
    writer.write_string("A")
    assert writer.getvalue() == b"\x00\x00\x00\x02\x00A"


def test_null_string_and_bytes_marker():
    writer = DataStreamWriter()
    writer.write_string(None)
    writer.write_bytes(None)
    assert writer.getvalue() == b"\xff\xff\xff\xff" * 2
    reader = DataStreamReader(writer.getvalue())
    assert reader.read_string() == ""
    assert reader.read_bytes() == b""
    assert reader.at_end


def test_bytes_and_integers_wire_format():
    writer = DataStreamWriter()
    writer.write_bytes(b"abc")
    writer.write_int64(1)
    writer.write_uint8(3)
    assert writer.getvalue() == b"\x00\x00\x00\x03abc" + b"\x00" * 7 + b"\x01" + b"\x03"


@pytest.mark.parametrize("text", ["", "get", "Привет", "emoji \U0001F600", "a\r\nb"])
def test_string_round_trip(text):
    writer = DataStreamWriter()
    writer.write_string(text)
    reader = DataStreamReader(writer.getvalue())
    assert reader.read_string() == text
    assert reader.at_end


@pytest.mark.parametrize("value", [0, -1, 2**63 - 1, -(2**63)])
def test_int64_round_trip(value):
    writer = DataStreamWriter()
    writer.write_int64(value)
    assert DataStreamReader(writer.getvalue()).read_int64() == value


def test_int32_round_trip_and_uint32():
    writer = DataStreamWriter()
    writer.write_int32(-5)
    writer.write_uint32(4000000000)
    reader = DataStreamReader(writer.getvalue())
    assert reader.read_int32() == -5
    assert reader.read_uint32() == 4000000000


def test_string_hash_round_trip():
    mapping = {"q_par1": "1", "q_par2": "2", "Content-Type": "application/json; charset=UTF-8"}
    writer = DataStreamWriter()
    writer.write_string_hash(mapping)
    reader = DataStreamReader(writer.getvalue())
    assert reader.read_string_hash() == mapping
    assert reader.at_end


def test_header_list_round_trip_keeps_order():
    pairs = [(b"Set-Cookie", b"a=1"), (b"Set-Cookie", b"b=2"), (b"Server", b"x")]
    writer = DataStreamWriter()
    writer.write_header_list(pairs)
    assert DataStreamReader(writer.getvalue()).read_header_list() == pairs


def test_uint8_out_of_range_raises():
    with pytest.raises(DataStreamError):
        DataStreamWriter().write_uint8(256)


def test_read_past_end_raises():
    reader = DataStreamReader(b"\x00\x00\x00\x05ab")
    with pytest.raises(DataStreamError):
        reader.read_bytes()


def test_odd_string_length_raises():
    with pytest.raises(DataStreamError):
        DataStreamReader(b"\x00\x00\x00\x01A").read_string()


def test_stream_type_wire_values():
    writer = DataStreamWriter()
    for stream_type in StreamType:
        writer.write_uint8(stream_type)
    assert writer.getvalue() == b"\x00\x01\x02\x03"


def test_request_defaults_use_markers():
    request = ExecutorRequest(method="GET", url="https://example.com/get")
    reader = _reader(request)
    assert _read_common(reader) == [
        "GET",
        "https://example.com/get",
        {},
        {},
        0,
        0,
        b"NO_PROXY",
        b"NO_COOKIE",
        b"NO_OUTFILE",
        StreamType.NONE,
    ]
    assert reader.at_end


def test_request_with_proxy_cookie_and_byte_payload():
    request = ExecutorRequest(
        method="POST",
        url="https://example.com/post",
        query_items={"q_par1": "1"},
        headers={"My-Testing_header": "test_header/content"},
        payload_chunk_size=10,
        payload_file_position=20,
        proxy="socks5://127.0.0.1:1080",
        cookie=b"cookie content",
        out_file="/tmp/out.txt",
        stream_type=StreamType.BYTE_ARRAY,
        payload=b'{"t_val":"x"}',
    )
    reader = _reader(request)
    assert _read_common(reader) == [
        "POST",
        "https://example.com/post",
        {"q_par1": "1"},
        {"My-Testing_header": "test_header/content"},
        10,
        20,
        b"socks5://127.0.0.1:1080",
        b"cookie content",
        b"/tmp/out.txt",
        StreamType.BYTE_ARRAY,
    ]
    assert reader.read_bytes() == b'{"t_val":"x"}'
    assert reader.at_end


def test_request_empty_cookie_marker():
    reader = _reader(ExecutorRequest(cookie=b""))
    fields = _read_common(reader)
    assert fields[7] == b"EMPTY_COOKIE"


def test_request_null_method_and_url():
    raw = ExecutorRequest().to_bytes()
    assert raw[:8] == b"\xff\xff\xff\xff" * 2


def test_request_file_payload():
    request = ExecutorRequest(stream_type=StreamType.FILE, payload_file="./json.example.txt")
    reader = _reader(request)
    assert _read_common(reader)[-1] == StreamType.FILE
    assert reader.read_bytes() == b"./json.example.txt"
    assert reader.at_end


def test_request_multi_buffer_payload():
    parts = [
        (StreamType.BYTE_ARRAY, b"------bound\r\n"),
        (StreamType.FILE, b"./json.example.txt"),
        (StreamType.BYTE_ARRAY, b"\r\n------bound--\r\n"),
    ]
    request = ExecutorRequest(stream_type=StreamType.MULTI_BUFFER, multi_buffer=parts)
    reader = _reader(request)
    assert _read_common(reader)[-1] == StreamType.MULTI_BUFFER
    count = reader.read_int32()
    decoded = [(StreamType(reader.read_int32()), reader.read_bytes()) for _ in range(count)]
    assert decoded == parts
    assert reader.at_end


def test_encode_is_base64_of_raw():
    request = ExecutorRequest(method="PUT", url="https://example.com/put")
    assert base64.b64decode(request.encode()) == request.to_bytes()


def _reply_bytes(headers, body, code, error, url, cookie) -> bytes:
    writer = DataStreamWriter()
    writer.write_header_list(headers)
    writer.write_bytes(body)
    writer.write_uint32(code)
    writer.write_bytes(error)
    writer.write_bytes(url)
    writer.write_bytes(cookie)
    return base64.b64encode(writer.getvalue())


def test_reply_decode_ok():
    headers = [(b"Content-Type", b"application/json")]
    data = _reply_bytes(headers, b'{"ok":1}', 0, b"", b"https://example.com/get", b"NO_COOKIE")
    reply = ExecutorReply.decode(data)
    assert reply.headers == headers
    assert reply.body == b'{"ok":1}'
    assert reply.result.is_ok()
    assert reply.error == ""
    assert reply.reply_url == "https://example.com/get"
    assert reply.cookie is None


def test_reply_decode_error_and_cookie():
    data = _reply_bytes([], b"", 7, b"Failed to connect", b"", b"cookie data")
    reply = ExecutorReply.decode(data)
    assert reply.code == 7
    assert not reply.result.is_ok()
    assert reply.error == "Failed to connect"
    assert reply.cookie == b"cookie data"


def test_reply_empty_cookie_is_none():
    reply = ExecutorReply.decode(_reply_bytes([], b"", 0, b"", b"", b""))
    assert reply.cookie is None


def test_reply_truncated_raises():
    data = base64.b64encode(b"\x00\x00\x00\x01")
    with pytest.raises(DataStreamError):
        ExecutorReply.decode(data)