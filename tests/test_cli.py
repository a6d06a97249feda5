"""Tests for the Typer CLI: top and rate with in-memory collaborators, then end to end on Postgres."""

import pytest
from typer.testing import CliRunner

from src import cli as cli_module
from src.ai.critic_base import MockTreeCritic
from src.cli import app
from src.core.config import reset_config
from src.core.errors import InferenceError, RecordStoreError
from src.services.rating_service import TreeRatingService
from tests.fakes import FakeBlobStore, FakeRatingRepo, RaisingCritic, make_image_bytes

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    """Keep CLI commands from replacing the root handlers while CliRunner swaps stdout."""
    monkeypatch.setattr(cli_module, "setup_logging", lambda level=None: None)


@pytest.fixture
def fake_repo(monkeypatch):
    repo = FakeRatingRepo()
    monkeypatch.setattr(cli_module, "_get_session_factory", lambda: None)
    monkeypatch.setattr(cli_module, "RatingRepository", lambda session_factory: repo)
    return repo


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "tree.png"
    path.write_bytes(make_image_bytes("PNG"))
    return path


@pytest.mark.fast
def test_top_empty(fake_repo):
    result = runner.invoke(app, ["top"])
    assert result.exit_code == 0
    assert "No rated trees yet." in result.output


@pytest.mark.fast
def test_top_lists_in_rank_order(fake_repo):
    fake_repo.add(image_url="u1", aesthetics_score=2, originality_score=1)
    fake_repo.add(image_url="u2", aesthetics_score=5, originality_score=4)
    result = runner.invoke(app, ["top", "--limit", "5"])
    assert result.exit_code == 0
    assert "Aesthetics" in result.output
    assert "Originality" in result.output
    assert "No rated trees yet." not in result.output


@pytest.mark.fast
def test_top_reports_total_when_limited(fake_repo):
    for score in [1, 4, 3]:
        fake_repo.add(image_url=f"u{score}", aesthetics_score=score, originality_score=0)
    result = runner.invoke(app, ["top", "--limit", "2"])
    assert result.exit_code == 0, result.output
    assert "Showing 2 of 3 rated trees." in result.output


@pytest.mark.fast
def test_top_database_error_exits_1(fake_repo):
    fake_repo.fail_list = RecordStoreError("Database error: down")
    result = runner.invoke(app, ["top"])
    assert result.exit_code == 1
    assert "Database error: down" in result.output


@pytest.mark.fast
def test_rate_prints_rating(monkeypatch, image_file):
    service = TreeRatingService(FakeBlobStore(), MockTreeCritic(), FakeRatingRepo())
    monkeypatch.setattr(cli_module, "_build_service", lambda critic_name=None: service)
    result = runner.invoke(app, ["rate", str(image_file)])
    assert result.exit_code == 0, result.output
    assert "Stored as http://testserver/media/christmas-trees/tree-1700000000000-abcd1234.png (id=1)" in result.output
    assert "The warm white lights" in result.output
    assert "Improvement 3" in result.output


@pytest.mark.fast
def test_rate_failure_exits_1(monkeypatch, image_file):
    critic = RaisingCritic(InferenceError("Failed to analyze Christmas tree: quota"))
    service = TreeRatingService(FakeBlobStore(), critic, FakeRatingRepo())
    monkeypatch.setattr(cli_module, "_build_service", lambda critic_name=None: service)
    result = runner.invoke(app, ["rate", str(image_file)])
    assert result.exit_code == 1
    assert "Rating failed: Failed to analyze Christmas tree: quota" in result.output


@pytest.mark.fast
def test_rate_missing_file(tmp_path):
    result = runner.invoke(app, ["rate", str(tmp_path / "nope.jpg")])
    assert result.exit_code != 0


@pytest.mark.slow
def test_rate_then_top_end_to_end(engine, monkeypatch, tmp_path, image_file):
    """rate --critic mock stores the blob and the row; top shows it."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("TREE_RATER_DATA_DIR", str(data_dir))
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://trees.test")
    reset_config()
    try:
        result = runner.invoke(app, ["rate", str(image_file), "--critic", "mock"])
        assert result.exit_code == 0, result.output
        assert "Stored as http://trees.test/media/christmas-trees/tree-" in result.output
        stored = list((data_dir / "christmas-trees").glob("tree-*.png"))
        assert len(stored) == 1

        result = runner.invoke(app, ["top"])
        assert result.exit_code == 0, result.output
        assert "No rated trees yet." not in result.output
        assert "Showing 1 of 1 rated trees." in result.output
    finally:
        reset_config()
