"""Tests for manifest de-obfuscation and decoding."""

import pytest

from conftest import MANIFEST_NAME, encode_manifest
from patch_cli.exceptions import ManifestDecodeError, ManifestFetchError
from patch_cli.manifest import ManifestLoader
from patch_cli.manifest.codec import decode_manifest, load_manifest_blob, xor_obfuscate
from patch_cli.models import Endpoint, ManifestEntry

HASH = "ab" * 32


def test_xor_obfuscate_rolling_key():
    """Byte i is XORed with ((i mod 255) + key) mod 256."""
    out = xor_obfuscate(bytes(300), 0x69)

    assert out[0] == 0x69
    assert out[1] == 0x6A
    assert out[0x96] == 0xFF
    assert out[0x97] == 0x00  # Wraps modulo 256
    assert out[254] == (254 + 0x69) & 0xFF
    assert out[255] == 0x69  # Restarts every 255 bytes
    assert out[256] == 0x6A


def test_xor_obfuscate_is_its_own_inverse():
    data = bytes(range(256)) * 3
    assert xor_obfuscate(xor_obfuscate(data, 0x42), 0x42) == data


def test_decode_valid_manifest():
    """Test decoding a well-formed manifest preserves order and fields."""
    blob = encode_manifest(
        [("bin/game.exe", HASH, 1700000000), ("data/maps/01.map", "cd" * 32, 42)],
        key=None,
    )
    manifest = decode_manifest(blob)

    assert manifest.declared_count == 2
    assert len(manifest) == 2
    assert manifest.entries[0] == ManifestEntry("bin/game.exe", HASH, 1700000000)
    assert manifest.entries[1].path == "data/maps/01.map"
    assert manifest.entries[1].last_modified == 42


def test_decode_ignores_header_content():
    blob = encode_manifest([("a.txt", HASH, 1)], key=None, header=b"\xff" * 16)
    assert decode_manifest(blob).entries[0].path == "a.txt"


def test_decode_empty_manifest():
    manifest = decode_manifest(encode_manifest([], key=None))
    assert manifest.declared_count == 0
    assert manifest.entries == ()


def test_decode_negative_timestamp():
    manifest = decode_manifest(encode_manifest([("old.txt", HASH, -5)], key=None))
    assert manifest.entries[0].last_modified == -5


def test_decode_truncated_entry_list():
    """A declared count larger than the data is a fatal error."""
    blob = encode_manifest([("a.txt", HASH, 1)], key=None, count=3)

    with pytest.raises(ManifestDecodeError, match="truncated"):
        decode_manifest(blob)


def test_decode_truncated_header():
    with pytest.raises(ManifestDecodeError, match="reserved header"):
        decode_manifest(bytes(10))


def test_decode_truncated_mid_field():
    blob = encode_manifest([("a.txt", HASH, 1)], key=None)
    with pytest.raises(ManifestDecodeError, match="timestamp"):
        decode_manifest(blob[:-3])


def test_decode_ignores_trailing_bytes():
    blob = encode_manifest([("a.txt", HASH, 1)], key=None, trailer=b"junk")
    assert len(decode_manifest(blob)) == 1


@pytest.mark.parametrize("bad_path", ["../evil.dll", "data/../../x", "/etc/passwd", "C:\\x", ""])
def test_decode_rejects_unsafe_paths(bad_path):
    blob = encode_manifest([(bad_path, HASH, 1)], key=None)
    with pytest.raises(ManifestDecodeError):
        decode_manifest(blob)


def test_decode_rejects_duplicate_paths():
    blob = encode_manifest([("data/a.bin", HASH, 1), ("data\\a.bin", HASH, 2)], key=None)
    with pytest.raises(ManifestDecodeError, match="more than once"):
        decode_manifest(blob)


def test_windows_separators_are_normalised(tmp_path):
    manifest = decode_manifest(encode_manifest([("data\\sub\\a.bin", HASH, 1)], key=None))
    entry = manifest.entries[0]

    assert entry.path == "data\\sub\\a.bin"
    assert entry.local_path(tmp_path) == tmp_path / "data" / "sub" / "a.bin"
    assert Endpoint(0, "http://m/").url_for(entry.path) == "http://m/data/sub/a.bin"


def test_load_manifest_blob_deobfuscates():
    blob = encode_manifest([("a.txt", HASH, 7)], key=0x13)
    manifest = load_manifest_blob(blob, 0x13)
    assert manifest.entries[0] == ManifestEntry("a.txt", HASH, 7)


def test_load_with_wrong_key_fails():
    blob = encode_manifest([("a.txt", HASH, 7)], key=0x13)
    with pytest.raises(ManifestDecodeError):
        load_manifest_blob(blob, 0x14)


@pytest.mark.asyncio
async def test_loader_fetches_from_endpoint(cdn, session):
    """Test the loader downloads and decodes the served manifest."""
    cdn.manifest = encode_manifest([("a.txt", HASH, 7), ("b.txt", HASH, 8)])

    manifest = await ManifestLoader(session).load(Endpoint(0, cdn.base_url))

    assert [e.path for e in manifest.entries] == ["a.txt", "b.txt"]
    assert cdn.gets(MANIFEST_NAME) == [None]


@pytest.mark.asyncio
async def test_loader_missing_manifest(cdn, session):
    with pytest.raises(ManifestFetchError):
        await ManifestLoader(session).load(Endpoint(0, cdn.base_url))


@pytest.mark.asyncio
async def test_loader_custom_name(cdn, session):
    cdn.files["patch/list.bin"] = encode_manifest([("a.txt", HASH, 7)])

    loader = ManifestLoader(session, manifest_name="patch/list.bin")
    manifest = await loader.load(Endpoint(0, cdn.base_url))

    assert len(manifest) == 1
    assert cdn.gets("patch/list.bin") == [None]
