"""
Tests for end-to-end log conversion.
"""

import json
import math
import os
import struct

import pytest

from utmconv.exceptions import DestinationUnwritable, NoSessionAvailable, SourceUnreadable
from utmconv.services.converter import UTMConverter, convert_telemetry_file, read_track
from utmconv.services.session import ChannelAllocator
from utmconv.utils.sample_data import (
    encode_records,
    generate_circle_flight,
    global_position,
    heartbeat,
    raw_gps,
    vfr_hud,
    write_log,
)


T0 = 1_600_000_000_000_000
SEC = 1_000_000
# Non-zero low byte, so the byte-swapped reading lands in the future
RECORDED_US = 1_600_000_000_123_456


@pytest.fixture
def allocator():
    return ChannelAllocator(max_channels=2)


@pytest.fixture
def scenario_log(tmp_path):
    """Position at T0, speed update at T0+2s, trailing timestamp T0+3s."""
    data = encode_records([
        (T0, global_position(377654320, -1223456780, 100000)),
        (T0 + 2 * SEC, vfr_hud(5.5)),
    ])
    path = tmp_path / "scenario.tlog"
    path.write_bytes(data + struct.pack(">Q", T0 + 3 * SEC))
    return path


def load_items(path):
    doc = json.loads(path.read_text(encoding="utf-8"))
    return doc["exchange"]["message"]["flight_logging"]["flight_logging_items"]


class TestConvert:
    """Tests for UTMConverter.convert."""

    def test_scenario(self, scenario_log, tmp_path, allocator):
        """A speed update after the only position never reaches the track."""
        dst = tmp_path / "out" / "flight_007.json"
        dst.parent.mkdir()

        with UTMConverter(allocator) as converter:
            assert converter.convert(scenario_log, dst) is True

        assert load_items(dst) == [[0.0, -122.345678, 37.765432, 100.0, 0.0]]

    def test_footer_filename(self, scenario_log, tmp_path, allocator):
        dst = tmp_path / "flight_007.json"

        with UTMConverter(allocator) as converter:
            converter.convert(scenario_log, dst)

        doc = json.loads(dst.read_text(encoding="utf-8"))
        assert doc["exchange"]["message"]["file"]["filename"] == "flight_007"
        assert doc["exchange"]["message"]["flight_logging"]["logging_start_dtg"] == "2020-09-13T12:26:40Z"

    def test_empty_log_removes_destination(self, tmp_path, allocator):
        src = tmp_path / "empty.tlog"
        src.write_bytes(b"")
        dst = tmp_path / "empty.json"

        with UTMConverter(allocator) as converter:
            assert converter.convert(src, dst) is True

        assert not dst.exists()

    def test_log_without_positions_removes_destination(self, tmp_path, allocator):
        src = write_log(tmp_path / "nopos.tlog", [
            (T0, heartbeat()),
            (T0 + SEC, vfr_hud(3.0)),
            (T0 + 2 * SEC, raw_gps(1, 2, 3, fix_type=2)),
        ])
        dst = tmp_path / "nopos.json"

        with UTMConverter(allocator) as converter:
            assert converter.convert(src, dst) is True

        assert not dst.exists()

    def test_missing_source(self, tmp_path, allocator):
        dst = tmp_path / "out.json"

        with UTMConverter(allocator) as converter:
            assert converter.convert(tmp_path / "missing.tlog", dst) is False

        assert not dst.exists()

    def test_unwritable_destination(self, scenario_log, tmp_path, allocator):
        dst = tmp_path / "no_such_dir" / "out.json"

        with UTMConverter(allocator) as converter:
            assert converter.convert(scenario_log, dst) is False

    def test_no_session_available(self, scenario_log, tmp_path):
        dst = tmp_path / "out.json"

        with UTMConverter(ChannelAllocator(max_channels=0)) as converter:
            assert converter.convert(scenario_log, dst) is False

        assert not dst.exists()

    @pytest.mark.skipif(not os.path.exists("/dev/full"), reason="needs /dev/full")
    def test_full_device_does_not_raise(self, scenario_log, allocator, caplog):
        """A failed write is logged; the call still reports the files as opened."""
        with caplog.at_level("WARNING"):
            with UTMConverter(allocator) as converter:
                assert converter.convert(scenario_log, "/dev/full") is True

        assert "Unable to write UTM file" in caplog.text
        assert os.path.exists("/dev/full")

    def test_infinite_speed_written_as_zero(self, tmp_path, allocator):
        src = write_log(tmp_path / "inf.tlog", [
            (T0, vfr_hud(math.inf)),
            (T0 + SEC, global_position(1, 2, 3)),
            (T0 + 2 * SEC, global_position(4, 5, 6)),
        ])
        dst = tmp_path / "inf.json"

        with UTMConverter(allocator) as converter:
            assert converter.convert(src, dst) is True

        assert [item[4] for item in load_items(dst)] == [0.0, 0.0]


class TestConvertFile:
    """Tests for the raising variant."""

    def test_result(self, scenario_log, tmp_path, allocator):
        dst = tmp_path / "scenario.json"

        with UTMConverter(allocator) as converter:
            result = converter.convert_file(scenario_log, dst)

        assert result.output_file == dst
        assert result.sample_count == 1
        assert result.fused_position
        assert result.message_counts == {"GlobalPositionEstimate": 1, "AirspeedHud": 1}

    def test_empty_result(self, tmp_path, allocator):
        src = write_log(tmp_path / "hb.tlog", [(T0, heartbeat())])

        with UTMConverter(allocator) as converter:
            result = converter.convert_file(src, tmp_path / "hb.json")

        assert result.output_file is None
        assert result.sample_count == 0

    def test_error_kinds(self, scenario_log, tmp_path, allocator):
        with UTMConverter(allocator) as converter:
            with pytest.raises(SourceUnreadable):
                converter.convert_file(tmp_path / "missing.tlog", tmp_path / "a.json")
            with pytest.raises(DestinationUnwritable):
                converter.convert_file(scenario_log, tmp_path / "missing" / "a.json")

        with UTMConverter(ChannelAllocator(max_channels=0)) as converter:
            with pytest.raises(NoSessionAvailable):
                converter.convert_file(scenario_log, tmp_path / "a.json")

    @pytest.mark.skipif(not os.path.exists("/dev/full"), reason="needs /dev/full")
    def test_write_error_result(self, scenario_log, allocator):
        with UTMConverter(allocator) as converter:
            result = converter.convert_file(scenario_log, "/dev/full")

        assert result.output_file is None
        assert result.write_error is not None
        assert result.sample_count == 1

    def test_raw_gps_only_flight(self, tmp_path, allocator):
        src = generate_circle_flight(
            tmp_path / "raw.tlog", duration_s=10.0, rate_hz=5.0, fused_position=False, seed=1,
        )

        with UTMConverter(allocator) as converter:
            result = converter.convert_file(src, tmp_path / "raw.json")

        assert not result.fused_position
        assert result.sample_count == 50

    def test_generated_flight(self, tmp_path, allocator):
        src = generate_circle_flight(tmp_path / "circle.tlog", duration_s=10.0, rate_hz=5.0, seed=2)
        dst = tmp_path / "circle.json"

        with UTMConverter(allocator) as converter:
            result = converter.convert_file(src, dst)

        items = load_items(dst)
        elapsed = [item[0] for item in items]
        assert result.fused_position
        assert len(items) == 50
        assert elapsed == sorted(elapsed)
        assert all(item[4] > 0 for item in items)

    def test_little_endian_log(self, tmp_path, allocator):
        src = write_log(tmp_path / "le.tlog", [
            (RECORDED_US, global_position(1, 2, 3)),
            (RECORDED_US + 2 * SEC, global_position(4, 5, 6)),
        ], little_endian=True)
        dst = tmp_path / "le.json"

        with UTMConverter(allocator) as converter:
            converter.convert_file(src, dst)

        assert [item[0] for item in load_items(dst)] == [0.0, 2.0]


class TestSessionLifecycle:
    """Tests for decoder session ownership."""

    def test_session_acquired_lazily(self, allocator):
        converter = UTMConverter(allocator)

        assert converter.session is None
        assert allocator.available == 2
        converter.close()

    def test_session_reused(self, scenario_log, tmp_path, allocator):
        with UTMConverter(allocator) as converter:
            converter.convert(scenario_log, tmp_path / "a.json")
            channel = converter.session.channel
            converter.convert(scenario_log, tmp_path / "b.json")

            assert converter.session.channel == channel
            assert allocator.available == 1

        assert allocator.available == 2

    def test_truncated_log_does_not_leak_into_next(self, tmp_path, allocator):
        """A partial frame left by one log is dropped before the next."""
        truncated = tmp_path / "truncated.tlog"
        truncated.write_bytes(encode_records([
            (T0, global_position(1, 2, 3)),
            (T0 + SEC, global_position(4, 5, 6)),
        ])[:-4])
        complete = write_log(tmp_path / "complete.tlog", [
            (T0, global_position(7, 8, 9)),
            (T0 + SEC, global_position(10, 11, 12)),
        ])

        with UTMConverter(allocator) as converter:
            first = converter.convert_file(truncated, tmp_path / "truncated.json")
            second = converter.convert_file(complete, tmp_path / "complete.json")

        assert first.sample_count == 1
        assert second.sample_count == 2
        assert second.message_counts == {"GlobalPositionEstimate": 2}
        assert [item[0] for item in load_items(tmp_path / "complete.json")] == [0.0, 1.0]

    def test_session_released_on_close(self, scenario_log, tmp_path, allocator):
        converter = UTMConverter(allocator)
        converter.convert(scenario_log, tmp_path / "a.json")
        session = converter.session

        converter.close()

        assert session.released
        assert converter.session is None
        assert allocator.available == 2

    def test_session_kept_after_failure(self, tmp_path, allocator):
        with UTMConverter(allocator) as converter:
            converter.convert(tmp_path / "missing.tlog", tmp_path / "a.json")

            assert converter.session is not None

    def test_converters_get_distinct_channels(self, scenario_log, tmp_path, allocator):
        with UTMConverter(allocator) as first, UTMConverter(allocator) as second:
            first.convert(scenario_log, tmp_path / "a.json")
            second.convert(scenario_log, tmp_path / "b.json")

            assert first.session.channel != second.session.channel

            with UTMConverter(allocator) as third:
                assert third.convert(scenario_log, tmp_path / "c.json") is False

    def test_scoped_conversion_releases(self, scenario_log, tmp_path, allocator):
        convert_telemetry_file(scenario_log, tmp_path / "a.json", allocator)
        with pytest.raises(SourceUnreadable):
            convert_telemetry_file(tmp_path / "missing.tlog", tmp_path / "b.json", allocator)

        assert allocator.available == 2

    def test_scoped_session_raises_when_exhausted(self):
        allocator = ChannelAllocator(max_channels=0)

        with pytest.raises(NoSessionAvailable):
            with allocator.session():
                pass


class TestReadTrack:
    """Tests for in-memory interpretation."""

    def test_read_track(self, scenario_log, allocator):
        track, fused = read_track(scenario_log, allocator)

        assert len(track) == 1
        assert fused
        assert allocator.available == 2

    def test_missing_file(self, tmp_path, allocator):
        with pytest.raises(SourceUnreadable):
            read_track(tmp_path / "missing.tlog", allocator)

        assert allocator.available == 2
