"""Tests for the Garmin GPX and ADM decoders."""

import struct
from datetime import datetime, timezone

import pytest

from fishmap_parsers.decoders.garmin import (
    AdmDecoder,
    GarminDecoder,
    GpxDecoder,
    looks_like_gpx,
    parse_gpx_time,
)
from fishmap_parsers.models import GARMIN

GPX_HEAD = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<gpx version="1.1" creator="Garmin Desktop App" '
    'xmlns="http://www.topografix.com/GPX/1/1" '
    'xmlns:gpxx="http://www.garmin.com/xmlschemas/GpxExtensions/v3" '
    'xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v2">\n'
)


def _gpx(body, head=GPX_HEAD):
    return (head + body + "</gpx>").encode("utf-8")


class TestGpxTime:
    def test_zulu(self):
        assert parse_gpx_time("2024-05-01T06:00:00Z") == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        assert parse_gpx_time("2024-05-01T08:00:00+02:00") == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        assert parse_gpx_time("2024-05-01T06:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("text,micros", [
        ("2024-05-01T06:00:00.5Z", 500000),
        ("2024-05-01T06:00:00.25Z", 250000),
        ("2024-05-01T06:00:00.123Z", 123000),
        ("2024-05-01T06:00:00.1234567Z", 123456),
    ])
    def test_fractional_seconds_any_precision(self, text, micros):
        assert parse_gpx_time(text) == datetime(2024, 5, 1, 6, 0, 0, micros, tzinfo=timezone.utc)

    def test_fraction_with_offset(self):
        assert parse_gpx_time("2024-05-01T08:00:00.5+02:00") == datetime(
            2024, 5, 1, 6, 0, 0, 500000, tzinfo=timezone.utc
        )

    def test_garbage(self):
        assert parse_gpx_time("yesterday") is None
        assert parse_gpx_time(None) is None


class TestGpxWaypoints:
    def test_single_waypoint(self):
        data = b'<gpx><wpt lat="37.7749" lon="-122.4194"><name>Test</name></wpt></gpx>'
        result = GpxDecoder().decode(data, "test.gpx", "gpx")
        assert result.success
        assert len(result.waypoints) == 1
        assert result.waypoints[0].name == "Test"
        assert result.waypoints[0].latitude == 37.7749
        assert result.waypoints[0].longitude == -122.4194

    def test_empty_gpx(self):
        result = GpxDecoder().decode(b"<gpx></gpx>", "empty.gpx", "gpx")
        assert not result.success
        assert result.error == "No data found in GPX file"

    def test_invalid_coordinates_reduce_count(self):
        data = _gpx(
            '<wpt lat="45.0" lon="-93.0"><name>A</name></wpt>'
            '<wpt lat="abc" lon="-93.0"><name>Bad</name></wpt>'
            '<wpt lat="45.2" lon="-93.2"><name>C</name></wpt>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.success
        assert [wp.name for wp in result.waypoints] == ["A", "C"]

    def test_out_of_range_coordinates_skipped(self):
        data = _gpx('<wpt lat="91" lon="0"/><wpt lat="0" lon="181"/><wpt lat="1" lon="1"/>')
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert len(result.waypoints) == 1

    def test_waypoint_fields_and_extensions(self):
        data = _gpx(
            '<metadata><time>2024-05-01T05:00:00Z</time></metadata>'
            '<wpt lat="45.5" lon="-93.25">'
            '<time>2024-05-01T06:00:00Z</time><name>Rock Pile</name>'
            '<cmt>comment</cmt><desc>Walleye on the edge</desc><sym>Fishing Area</sym>'
            '<extensions><gpxx:WaypointExtension>'
            '<gpxx:Depth>6.4</gpxx:Depth><gpxx:Temperature>17.5</gpxx:Temperature>'
            '</gpxx:WaypointExtension></extensions>'
            '</wpt>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        [wp] = result.waypoints
        assert wp.notes == "Walleye on the edge"
        assert wp.icon == "Fishing Area"
        assert wp.depth == 6.4
        assert wp.temperature == 17.5
        assert wp.device == GARMIN
        assert wp.timestamp == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)
        assert result.file_metadata.software_version == "Garmin Desktop App"
        assert result.file_metadata.created_date == datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)
        assert result.file_metadata.file_type == "GPX (GPS Exchange Format)"
        [reading] = result.depth_readings
        assert reading.depth == 6.4

    def test_comment_used_when_no_desc(self):
        data = _gpx('<wpt lat="1" lon="1"><cmt>note</cmt></wpt>')
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.waypoints[0].notes == "note"
        assert result.waypoints[0].name == "Unnamed Waypoint"

    def test_plain_depth_child(self):
        data = _gpx('<wpt lat="1" lon="1"><depth>3.5</depth></wpt>')
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.waypoints[0].depth == 3.5

    def test_gpx10_without_namespace(self):
        data = (
            b'<?xml version="1.0"?><gpx version="1.0" creator="old">'
            b'<time>2020-01-02T03:04:05Z</time>'
            b'<wpt lat="10" lon="20"><name>Old</name></wpt></gpx>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.success
        assert result.file_metadata.created_date == datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestGpxTracksAndRoutes:
    def test_track_segments_concatenated(self):
        data = _gpx(
            '<trk><name>Morning Troll</name>'
            '<extensions><gpxx:TrackExtension><gpxx:DisplayColor>DarkBlue</gpxx:DisplayColor>'
            '</gpxx:TrackExtension></extensions>'
            '<trkseg>'
            '<trkpt lat="45.0" lon="-93.0"><time>2024-05-01T06:00:00Z</time>'
            '<extensions><gpxtpx:TrackPointExtension>'
            '<gpxtpx:wtemp>14.5</gpxtpx:wtemp><gpxtpx:depth>5.0</gpxtpx:depth>'
            '<gpxtpx:speed>1.2</gpxtpx:speed><gpxtpx:course>270</gpxtpx:course>'
            '</gpxtpx:TrackPointExtension></extensions></trkpt>'
            '<trkpt lat="45.001" lon="-93.001"/>'
            '</trkseg><trkseg><trkpt lat="45.002" lon="-93.002"/></trkseg>'
            '</trk>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        [track] = result.tracks
        assert track.name == "Morning Troll"
        assert track.color == "#00008b"
        assert len(track.points) == 3
        first = track.points[0]
        assert first.temperature == 14.5
        assert first.depth == 5.0
        assert first.speed == 1.2
        assert first.heading == 270.0
        assert track.timestamp == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)
        assert len(result.depth_readings) == 1

    def test_empty_track_dropped(self):
        data = _gpx('<trk><name>Nothing</name><trkseg/></trk><wpt lat="1" lon="1"/>')
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.tracks == []

    def test_route(self):
        data = _gpx(
            '<rte><name>Channel</name>'
            '<rtept lat="45.0" lon="-93.0"><name>R1</name></rtept>'
            '<rtept lat="45.1" lon="-93.1"><name>R2</name></rtept>'
            '</rte>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.success
        [route] = result.routes
        assert route.name == "Channel"
        assert [wp.name for wp in route.waypoints] == ["R1", "R2"]

    def test_route_point_depth_becomes_reading(self):
        data = _gpx(
            '<wpt lat="44.9" lon="-92.9"><depth>2.0</depth></wpt>'
            '<rte><name>R</name>'
            '<rtept lat="45.0" lon="-93.0"><name>A</name><depth>4.5</depth></rtept>'
            '<rtept lat="45.1" lon="-93.1"><name>B</name></rtept>'
            '<rtept lat="45.2" lon="-93.2"><name>C</name><depth>6.0</depth></rtept>'
            '</rte>'
        )
        result = GpxDecoder().decode(data, "x.gpx", "gpx")
        assert result.routes[0].waypoints[0].depth == 4.5
        assert [d.depth for d in result.depth_readings] == [2.0, 4.5, 6.0]
        assert (result.depth_readings[1].latitude, result.depth_readings[1].longitude) == (45.0, -93.0)


class TestGpxErrors:
    def test_malformed_xml(self):
        result = GpxDecoder().decode(b"<gpx><wpt></gpx>", "x.gpx", "gpx")
        assert not result.success
        assert result.error.startswith("Invalid GPX XML")

    def test_wrong_root(self):
        result = GpxDecoder().decode(b"<kml></kml>", "x.gpx", "gpx")
        assert not result.success
        assert "<gpx>" in result.error


T0 = 1714543200


def _adm_header(created=T0, data_offset=14, sig=b"GARMIN"):
    return struct.pack("<6sBBHI", sig, 2, 1, data_offset, created)


def _adm_block(block_type, payload):
    return struct.pack("<HI", block_type, len(payload)) + payload


def _adm_waypoint(lat, lon, name, t=T0, depth=0.0, temp=0.0):
    return _adm_block(1, struct.pack("<dd32sIff", lat, lon, name.encode(), t, depth, temp))


def _adm_track(name, points):
    payload = struct.pack("<32sI", name.encode(), len(points))
    for lat, lon, depth in points:
        payload += struct.pack("<ddIff", lat, lon, T0, depth, 0.0)
    return _adm_block(2, payload)


def _adm_route(name, points):
    payload = struct.pack("<32sH", name.encode(), len(points))
    for lat, lon, pname in points:
        payload += struct.pack("<dd32s", lat, lon, pname.encode())
    return _adm_block(3, payload)


def _adm_depth(lat, lon, depth):
    return _adm_block(4, struct.pack("<ddfI", lat, lon, depth, T0))


class TestAdmDecoder:
    def test_truncated_header(self):
        result = AdmDecoder().decode(b"GARMIN\x02\x01", "x.adm", "adm")
        assert not result.success
        assert result.error == "Invalid ADM file header"

    def test_header_only(self):
        result = AdmDecoder().decode(_adm_header(), "x.adm", "adm")
        assert not result.success
        assert result.error == "No data found in ADM file"

    def test_all_record_types(self):
        data = (
            _adm_header()
            + _adm_waypoint(30.5, -88.0, "Reef", depth=12.0, temp=24.0)
            + _adm_track("Run", [(30.5, -88.0, 10.0), (30.6, -88.1, 0.0), (100.0, 0.0, 0.0)])
            + _adm_route("Home", [(30.5, -88.0, "A"), (30.7, -88.2, "")])
            + _adm_depth(30.8, -88.3, 15.5)
        )
        result = AdmDecoder().decode(data, "x.adm", "adm")
        assert result.success
        meta = result.file_metadata
        assert meta.software_version == "2.1"
        assert meta.file_type == "Garmin ADM (ActiveCaptain)"
        assert meta.created_date == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

        [wp] = result.waypoints
        assert (wp.name, wp.depth, wp.temperature) == ("Reef", 12.0, 24.0)
        [track] = result.tracks
        assert len(track.points) == 2
        [route] = result.routes
        assert [p.name for p in route.waypoints] == ["A", "Waypoint 2"]
        # waypoint depth, first track point depth, standalone sounding
        assert [d.depth for d in result.depth_readings] == [12.0, 10.0, 15.5]

    def test_data_offset_respected(self):
        data = _adm_header(data_offset=20) + b"\xff" * 6 + _adm_waypoint(1.0, 1.0, "A")
        result = AdmDecoder().decode(data, "x.adm", "adm")
        assert [wp.name for wp in result.waypoints] == ["A"]

    def test_small_data_offset_clamped(self):
        data = _adm_header(data_offset=0) + _adm_waypoint(1.0, 1.0, "A")
        result = AdmDecoder().decode(data, "x.adm", "adm")
        assert len(result.waypoints) == 1


class TestGarminDispatch:
    def test_looks_like_gpx(self):
        assert looks_like_gpx(b"<?xml version='1.0'?>")
        assert looks_like_gpx(b"  <gpx>")
        assert not looks_like_gpx(b"GARMIN\x02\x01")

    def test_content_picks_gpx(self):
        result = GarminDecoder().decode(b'<gpx><wpt lat="1" lon="1"/></gpx>', "mystery", None)
        assert result.success
        assert result.file_metadata.file_type == "GPX (GPS Exchange Format)"

    def test_content_picks_adm(self):
        data = _adm_header() + _adm_waypoint(1.0, 1.0, "A")
        result = GarminDecoder().decode(data, "mystery", None)
        assert result.success
        assert result.file_metadata.file_type == "Garmin ADM (ActiveCaptain)"

    def test_garbage_reports_adm_header(self):
        result = GarminDecoder().decode(b"\x00" * 40, "mystery", None)
        assert not result.success
        assert result.error == "Invalid ADM file header"

    @pytest.mark.parametrize("fmt", ["gpx", "adm"])
    def test_can_handle(self, fmt):
        assert GarminDecoder().can_handle(fmt)
        assert not GarminDecoder().can_handle("fsh")
