"""
Tests for CLI Commands
======================
Tests for the chatterbrain CLI interface in chatterbrain/cli.py.
"""

import json
import pytest
import sys
import subprocess
from pathlib import Path

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chatterbrain.cli import main, respond
from chatterbrain.brain import BrainStore
from chatterbrain.markov_chain import MarkovChain


CORPUS = "the gorillas are animals\nthe gorillas are people\n"


@pytest.fixture
def files(tmp_path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS, encoding="utf-8")
    return {
        'brain': tmp_path / "test.brn",
        'trainer': tmp_path / "test.trn",
        'corpus': corpus,
    }


def run(files, *args):
    return main([
        "--brain", str(files['brain']),
        "--trainer", str(files['trainer']),
        "--random-seed", "7",
        *args,
    ])


class TestCLIBasic:
    """Basic CLI tests."""

    def test_version_flag(self):
        """Test --version flag."""
        result = subprocess.run(
            [sys.executable, "-m", "chatterbrain", "--version"],
            capture_output=True,
            text=True,
            cwd=str(ROOT),
        )
        assert result.returncode == 0
        assert "chatterbrain" in result.stdout.lower()

    def test_help_flag(self):
        """Test --help flag."""
        result = subprocess.run(
            [sys.executable, "-m", "chatterbrain", "--help"],
            capture_output=True,
            text=True,
            cwd=str(ROOT),
        )
        assert result.returncode == 0
        assert "train" in result.stdout.lower()
        assert "reply" in result.stdout.lower()

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestCLITrain:
    """Tests for the train command."""

    def test_train_writes_brain(self, files, capsys):
        assert run(files, "train", str(files['corpus'])) == 0
        assert files['brain'].exists()
        assert "2 new links" in capsys.readouterr().out

    def test_train_missing_file(self, files, capsys):
        assert run(files, "train", str(files['corpus'].parent / "nope.txt")) == 1
        assert "not found" in capsys.readouterr().err
        assert not files['brain'].exists()

    def test_train_quiet(self, files, capsys):
        assert run(files, "--quiet", "train", str(files['corpus'])) == 0
        assert capsys.readouterr().out == ""


class TestCLIReply:
    """Tests for reply, seed and stats."""

    def test_reply_with_seed(self, files, capsys):
        run(files, "train", str(files['corpus']))
        capsys.readouterr()

        assert run(files, "reply", "--seed", "gorillas", "-n", "3") == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 3
        for line in lines:
            assert line in ("the gorillas are animals", "the gorillas are people")

    def test_reply_fallback_on_empty_brain(self, files, capsys):
        assert run(files, "reply", "--fallback", "nothing to say") == 0
        assert capsys.readouterr().out.strip() == "nothing to say"

    def test_reply_uses_trainer_when_no_brain(self, files, capsys):
        files['trainer'].write_text(CORPUS, encoding="utf-8")
        assert run(files, "reply", "--seed", "people") == 0
        assert capsys.readouterr().out.strip() == "the gorillas are people"

    def test_reply_save(self, files):
        files['trainer'].write_text(CORPUS, encoding="utf-8")
        assert run(files, "reply", "--save") == 0
        assert files['brain'].exists()

    def test_seed(self, files, capsys):
        run(files, "train", str(files['corpus']))
        capsys.readouterr()

        assert run(files, "seed", "animals") == 0
        assert capsys.readouterr().out.strip() == "animals"

    def test_seed_empty_brain(self, files, capsys):
        assert run(files, "seed") == 0
        assert capsys.readouterr().out == ""

    def test_stats_json(self, files, capsys):
        run(files, "train", str(files['corpus']))
        capsys.readouterr()

        assert run(files, "stats", "--json") == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats['words'] == 5
        assert stats['ngrams'] == 3

    def test_stats_table(self, files, capsys):
        assert run(files, "stats") == 0
        assert "Brain Statistics" in capsys.readouterr().out

    def test_corrupt_brain(self, files, capsys):
        files['brain'].write_text("[1, 2", encoding="utf-8")
        assert run(files, "stats") == 1
        assert "Error:" in capsys.readouterr().err


class TestCLIChat:
    """Tests for the interactive chat command."""

    def feed(self, monkeypatch, lines):
        lines = iter(lines)

        def fake_input(prompt=""):
            try:
                return next(lines)
            except StopIteration:
                raise EOFError

        monkeypatch.setattr("builtins.input", fake_input)

    def test_chat_learns_and_replies(self, files, monkeypatch, capsys):
        self.feed(monkeypatch, ["the gorillas are animals", "!quit"])
        assert run(files, "chat") == 0

        out = capsys.readouterr().out
        assert "- the gorillas are animals" in out
        assert files['brain'].exists()

    def test_chat_save_command(self, files, monkeypatch, capsys):
        self.feed(monkeypatch, ["the gorillas are people", "!save"])
        assert run(files, "chat") == 0
        assert "OK: Saved" in capsys.readouterr().out
        assert files['brain'].exists()

    def test_chat_without_input_does_not_save(self, files, monkeypatch):
        self.feed(monkeypatch, ["", "!exit"])
        assert run(files, "chat") == 0
        assert not files['brain'].exists()


class TestRespond:
    """Tests for respond()."""

    def test_learns_then_replies(self, tmp_path):
        store = BrainStore(chain=MarkovChain(), brain_file=tmp_path / "b.brn", trainer_file=tmp_path / "t.trn")
        reply = respond(store, "the gorillas are animals", recursion=2)
        assert reply == "the gorillas are animals"
        assert store.dirty is True

    def test_short_input_gets_fallback(self, tmp_path):
        store = BrainStore(chain=MarkovChain(), brain_file=tmp_path / "b.brn", trainer_file=tmp_path / "t.trn")
        assert respond(store, "hi", recursion=1, fallback="...") == "..."
