"""
Tests for the tagstream command line.
"""

import json
import os

import pytest

from tagstream import __version__
from tagstream.cli import build_parser, main, render_snapshot
from tagstream.session import StreamSession
from tests.fixtures.streaming_fixtures import StreamingFixtures


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run with no user configuration and no TAGSTREAM_* overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in [n for n in os.environ if n.startswith("TAGSTREAM_")]:
        monkeypatch.delenv(name)
    return tmp_path


@pytest.fixture
def recording(workdir):
    path = workdir / "answer.sse"
    path.write_text(StreamingFixtures.answer_stream("\r\n"), encoding="utf-8")
    return path


class TestParser:

    def test_json_flag_after_subcommand(self):
        args = build_parser().parse_args(["replay", "x.sse", "--json", "--chunk-size", "3"])

        assert args.command == "replay"
        assert args.json is True
        assert args.chunk_size == 3

    def test_ask_arguments(self):
        args = build_parser().parse_args(["ask", "CAP in adults", "--url", "http://local/s"])

        assert args.query == "CAP in adults"
        assert args.url == "http://local/s"
        assert args.json is False

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:

    def test_no_command(self, workdir):
        assert main([]) == 2

    def test_replay_json(self, recording, capsys):
        code = main(["replay", str(recording), "--chunk-size", "7", "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["state"] == "completed"
        assert [s["id"] for s in data["sections"]] == ["general", "tag-1-guideline", "tag-2-drug"]
        assert data["sections"][2]["content"] == "doxycycline"
        assert data["progress"] == 100

    def test_replay_uses_configured_titles(self, recording, workdir, capsys):
        config_path = workdir / "titles.yaml"
        config_path.write_text("sections:\n  titles:\n    drug: Medication\n")

        code = main(["--config", str(config_path), "replay", str(recording), "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["sections"][2]["title"] == "Medication"

    def test_invalid_config(self, recording, workdir):
        config_path = workdir / "bad.json"
        config_path.write_text('{"stream": {"chunk_size": 0}}')

        assert main(["--config", str(config_path), "replay", str(recording)]) == 2

    def test_missing_recording(self, workdir):
        assert main(["replay", str(workdir / "missing.sse")]) == 2

    def test_undecodable_recording(self, workdir):
        path = workdir / "latin1.sse"
        path.write_bytes(b"data: caf\xe9\n\n")

        assert main(["replay", str(path)]) == 2

    def test_invalid_chunk_size(self, recording):
        with pytest.raises(SystemExit) as exc_info:
            main(["replay", str(recording), "--chunk-size", "0"])
        assert exc_info.value.code == 2


class TestRender:

    def test_render_snapshot(self, config):
        session = StreamSession(config)
        session.append(StreamingFixtures.answer_stream())
        session.finish()

        group = render_snapshot(session.snapshot())

        # Steps panel plus three sections
        assert len(group.renderables) == 4
        assert group.renderables[0].title == "Search (100%)"
        assert group.renderables[2].title == "Guideline"
