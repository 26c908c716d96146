import json

import pytest

from formcoach.pose_detection.recorded_source import RecordedKeypointSource

from helpers import PLANK_LINE, make_frame


def write_lines(path, lines):
    path.write_text("\n".join(lines) + "\n")
    return str(path)


def test_reads_bare_and_wrapped_frames(tmp_path):
    frame = make_frame(PLANK_LINE)
    path = write_lines(tmp_path / "rec.jsonl", [
        json.dumps(frame),
        "",
        json.dumps({"t": 33, "keypoints": frame}),
    ])
    with RecordedKeypointSource(path) as source:
        frames = list(source)
    assert frames == [frame, frame]


def test_exhausted_source_returns_none(tmp_path):
    path = write_lines(tmp_path / "rec.jsonl", [json.dumps(make_frame({}))])
    source = RecordedKeypointSource(path)
    assert source.next_frame() is not None
    assert source.next_frame() is None
    source.close()
    assert source.next_frame() is None


def test_invalid_json_reports_line(tmp_path):
    path = write_lines(tmp_path / "rec.jsonl", [json.dumps(make_frame({})), "{not json"])
    with RecordedKeypointSource(path) as source:
        source.next_frame()
        with pytest.raises(ValueError, match="rec.jsonl:2"):
            source.next_frame()


def test_non_list_record_rejected(tmp_path):
    path = write_lines(tmp_path / "rec.jsonl", [json.dumps({"frame": 1})])
    with RecordedKeypointSource(path) as source:
        with pytest.raises(ValueError, match="expected a list"):
            source.next_frame()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        RecordedKeypointSource(str(tmp_path / "missing.jsonl"))
