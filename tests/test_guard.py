import hashlib
import hmac
import struct
import time
from base64 import b64decode, b64encode

from steam_mobile.guard import (
    STEAM_GUARD_CHARSET,
    TAG_ALLOW,
    TAG_LIST,
    SteamTime,
    generate_auth_code,
    generate_confirmation_key,
    generate_device_id,
    time_step,
)

from conftest import IDENTITY_SECRET, SHARED_SECRET


def reference_code(secret_b64: str, timestamp: int) -> str:
    digest = hmac.new(b64decode(secret_b64), struct.pack('>Q', timestamp // 30), hashlib.sha1).digest()
    start = digest[19] & 0x0F
    value = int.from_bytes(digest[start:start + 4], 'big') & 0x7FFFFFFF
    chars = []
    for _ in range(5):
        chars.append(STEAM_GUARD_CHARSET[value % 26])
        value //= 26
    return ''.join(chars)


def test_auth_code_alphabet_and_length():
    code = generate_auth_code(SHARED_SECRET, 1700000000)
    assert len(code) == 5
    assert all(c in STEAM_GUARD_CHARSET for c in code)


def test_auth_code_matches_reference():
    for ts in (0, 29, 30, 1700000000, 1700000017):
        assert generate_auth_code(SHARED_SECRET, ts) == reference_code(SHARED_SECRET, ts)


def test_auth_code_stable_within_window():
    base = 1700000010 - (1700000010 % 30)
    codes = {generate_auth_code(SHARED_SECRET, base + s) for s in range(30)}
    assert len(codes) == 1


def test_auth_code_accepts_raw_bytes():
    assert generate_auth_code(b64decode(SHARED_SECRET), 1700000000) == generate_auth_code(SHARED_SECRET, 1700000000)


def test_time_step_is_big_endian_counter():
    assert time_step(61) == b'\x00' * 7 + b'\x02'


def test_confirmation_key_matches_reference():
    ts = 1700000000
    expected = b64encode(
        hmac.new(b64decode(IDENTITY_SECRET), struct.pack('>Q', ts) + b'conf', hashlib.sha1).digest()
    ).decode()
    assert generate_confirmation_key(IDENTITY_SECRET, TAG_LIST, ts) == expected


def test_confirmation_key_depends_on_tag_and_time():
    ts = 1700000000
    key = generate_confirmation_key(IDENTITY_SECRET, TAG_ALLOW, ts)
    assert key == generate_confirmation_key(IDENTITY_SECRET, TAG_ALLOW, ts)
    assert key != generate_confirmation_key(IDENTITY_SECRET, TAG_LIST, ts)
    assert key != generate_confirmation_key(IDENTITY_SECRET, TAG_ALLOW, ts + 1)


def test_device_id_format():
    device_id = generate_device_id(76561198000000001)
    assert device_id == generate_device_id('76561198000000001')
    assert device_id.startswith('android:')
    assert [len(part) for part in device_id[len('android:'):].split('-')] == [8, 4, 4, 4, 12]


def test_steam_time_offset():
    steam_time = SteamTime.from_server_time(1000 + 42, local_time=1000.9)
    assert steam_time.offset == 42
    assert abs(steam_time.now() - (int(time.time()) + 42)) <= 1
    assert abs(steam_time.now_ms() - int((time.time() + 42) * 1000)) < 2000
