"""
Tests for canon_engine/cli.py -- The canon-engine command line.

Validates:
    - extract reads files or stdin and prints camelCase JSON
    - impact prints a report, or bare changes when nothing fires
    - Invalid snapshots and settings exit with code 2 and no traceback
"""

import copy
import io
import json

import pytest

from canon_engine.cli import EXIT_INVALID_INPUT, EXIT_OK, main


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return _write


class TestExtract:
    """Tests for the extract subcommand."""

    def test_from_files(self, tmp_path, capsys):
        chat = tmp_path / "chat.txt"
        chat.write_text(
            "The protagonist is Elara Voss. She finds the Ember Codex in the Sunken Library.",
            encoding="utf-8",
        )
        assert main(["extract", str(chat)]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert output["characters"][0]["name"] == "Elara Voss"
        assert output["characters"][0]["role"] == "protagonist"
        assert output["artifacts"][0]["name"] == "Ember Codex"

    def test_from_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert main(["extract"]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert output["characters"][0]["name"] == "Protagonist"
        assert output["locations"][0]["name"] == "Primary Setting"

    def test_missing_file(self, tmp_path, capsys):
        assert main(["extract", str(tmp_path / "missing.txt")]) == EXIT_INVALID_INPUT
        assert "error:" in capsys.readouterr().err


    def test_file_not_utf8(self, tmp_path, capsys):
        chat = tmp_path / "chat.txt"
        chat.write_bytes(b"The hero is \xffMara Voss.")
        assert main(["extract", str(chat)]) == EXIT_INVALID_INPUT
        assert "UTF-8" in capsys.readouterr().err


class TestImpact:
    """Tests for the impact subcommand."""

    def test_report(self, character_data, write_json, capsys):
        new = copy.deepcopy(character_data)
        new["character"]["storyState"]["alive"] = False
        old_path = write_json("old.json", character_data)
        new_path = write_json("new.json", new)

        assert main(["impact", old_path, new_path, "--chapters", "4"]) == EXIT_OK
        report = json.loads(capsys.readouterr().out)
        assert report["canonEntryId"] == "char-elara"
        assert report["changeDescription"] == "alive: true → false"
        assert report["issues"][0]["severity"] == "critical"
        assert [c["number"] for c in report["affectedChapters"]] == [1, 2, 3, 4]
        assert report["affectedChapters"][0]["title"] == "Chapter 1"

    def test_no_issues(self, character_data, write_json, capsys):
        new = copy.deepcopy(character_data)
        new["description"] = "Rewritten blurb."
        old_path = write_json("old.json", character_data)
        new_path = write_json("new.json", new)

        assert main(["impact", old_path, new_path]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert output["issues"] == []
        assert output["changes"][0]["field"] == "description"

    def test_invalid_snapshot(self, character_data, write_json, capsys):
        broken = copy.deepcopy(character_data)
        del broken["character"]["storyState"]["alive"]
        old_path = write_json("old.json", character_data)
        new_path = write_json("new.json", broken)

        assert main(["impact", old_path, new_path]) == EXIT_INVALID_INPUT
        err = capsys.readouterr().err
        assert "character.storyState.alive" in err
        assert "Traceback" not in err

    def test_type_mismatch(self, character_data, location_data, write_json, capsys):
        old_path = write_json("old.json", character_data)
        new_path = write_json("new.json", location_data)
        assert main(["impact", old_path, new_path]) == EXIT_INVALID_INPUT

    def test_not_json(self, tmp_path, write_json, character_data):
        bad = tmp_path / "bad.json"
        bad.write_text("{", encoding="utf-8")
        assert main(["impact", write_json("old.json", character_data), str(bad)]) == EXIT_INVALID_INPUT

    def test_not_utf8(self, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_bytes(b"\xff{}")
        assert main(["impact", str(bad), str(bad)]) == EXIT_INVALID_INPUT
        err = capsys.readouterr().err
        assert "UTF-8" in err
        assert "Traceback" not in err

    def test_negative_chapters_rejected(self, character_data, write_json):
        path = write_json("old.json", character_data)
        with pytest.raises(SystemExit) as exc_info:
            main(["impact", path, path, "--chapters", "-2"])
        assert exc_info.value.code == 2


class TestConfigOption:
    """Tests for --config."""

    def test_config_not_utf8(self, tmp_path, capsys):
        settings = tmp_path / "settings.json"
        settings.write_bytes(b"\xfe\xff")
        chat = tmp_path / "chat.txt"
        chat.write_text("Hello.", encoding="utf-8")
        assert main(["--config", str(settings), "extract", str(chat)]) == EXIT_INVALID_INPUT
        assert "Traceback" not in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "nope.json"), "extract", str(tmp_path)])
        assert code == EXIT_INVALID_INPUT
        assert "Settings file not found" in capsys.readouterr().err

    def test_config_applied(self, tmp_path, capsys):
        settings = tmp_path / "settings.json"
        settings.write_text(json.dumps({"max_artifacts": 1}), encoding="utf-8")
        chat = tmp_path / "chat.txt"
        chat.write_text("They found the Amber Codex and the Birch Codex.", encoding="utf-8")
        assert main(["--config", str(settings), "extract", str(chat)]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert [a["name"] for a in output["artifacts"]] == ["Amber Codex"]
