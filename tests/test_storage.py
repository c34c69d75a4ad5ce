"""
Unit tests for image decoding, seed resolution and output files.
Real files in a temp directory, no mocking of the filesystem.
"""
import base64
import datetime as _dt
import json
import random

import pytest

from sdautomate.core.errors import ImageDecodeError
from sdautomate.core.models import JobConfig
from sdautomate.core.storage import (
    SEED_RANGE, dated_output_dir, decode_image, parse_info, resolve_seed, save_image, save_metadata,
)


class TestResolveSeed:
    def test_sequential_from_info_seed(self):
        info = {"seed": 100}
        assert [resolve_seed(info, i) for i in range(3)] == [100, 101, 102]

    def test_zero_is_a_real_seed(self):
        assert resolve_seed({"seed": 0}, 2) == 2

    def test_random_without_info_seed(self):
        rng = random.Random(7)
        seeds = [resolve_seed({}, i, rng) for i in range(20)]
        assert all(0 <= s < SEED_RANGE for s in seeds)
        assert len(set(seeds)) > 1

    def test_non_integer_seed_is_ignored(self):
        rng = random.Random(1)
        expected = random.Random(1).randrange(SEED_RANGE)
        assert resolve_seed({"seed": "100"}, 0, rng) == expected


class TestParseInfo:
    def test_nested_json(self):
        assert parse_info('{"seed": 42, "all_seeds": [42]}') == {"seed": 42, "all_seeds": [42]}

    def test_missing(self):
        assert parse_info(None) == {}
        assert parse_info("") == {}

    def test_garbage_becomes_empty(self):
        assert parse_info("{not json") == {}

    def test_non_object_becomes_empty(self):
        assert parse_info("[1, 2]") == {}


class TestDecodeImage:
    def test_roundtrip_bytes(self, png_b64):
        raw = decode_image(png_b64)
        assert raw == base64.b64decode(png_b64)
        assert raw.startswith(b"\x89PNG")

    def test_invalid_base64(self):
        with pytest.raises(ImageDecodeError):
            decode_image("!!not base64!!")

    def test_not_an_image(self):
        with pytest.raises(ImageDecodeError):
            decode_image(base64.b64encode(b"hello world").decode())


class TestOutputFiles:
    def test_dated_dir_is_idempotent(self, tmp_path):
        day = _dt.date(2025, 8, 14)
        p1 = dated_output_dir(tmp_path, day)
        p2 = dated_output_dir(tmp_path, day)
        assert p1 == p2 == tmp_path / "2025-08-14"
        assert p1.is_dir()

    def test_image_name_from_timestamp_and_seed(self, tmp_path, png_b64):
        path = save_image(tmp_path, decode_image(png_b64), 1234, timestamp_ms=1700000000000)
        assert path.name == "1700000000000-1234.png"
        assert path.read_bytes() == base64.b64decode(png_b64)
        assert not list(tmp_path.glob("*.part"))

    def test_metadata_structure(self, tmp_path, png_b64):
        cfg = JobConfig.from_line({"prompt": "cat", "seed": -1, "custom": {"a": 1}})
        img = save_image(tmp_path, decode_image(png_b64), 77, timestamp_ms=1)
        meta_path = save_metadata(img, cfg, {"seed": 77}, 77)

        assert meta_path.name == "1-77.meta.json"
        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        assert meta["config"] == {"prompt": "cat", "seed": -1, "custom": {"a": 1}}
        assert meta["response"]["info"] == {"seed": 77}
        assert meta["response"]["filename"] == "1-77.png"
        assert meta["response"]["seed"] == 77
        _dt.datetime.fromisoformat(meta["response"]["timestamp"])
