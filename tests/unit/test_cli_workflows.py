from typer.testing import CliRunner

import reviewflow.persistence as persistence
from reviewflow.cli import app
from reviewflow.persistence import InMemoryItemRepository

WORKFLOWS = """
workflows:
  - id: wf-blog
    brand_id: b1
    name: Blog
    steps:
      - {order: 0, name: Edit, role: editor}
      - {order: 1, name: Legal, role: legal, assigned_user_ids: [lee]}
  - id: wf-claims
    brand_id: b2
    name: Claims
    steps:
      - {order: 0, role: legal}
"""


def _setup_repo(tmp_path, monkeypatch) -> InMemoryItemRepository:
    monkeypatch.setenv("REVIEWFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("REVIEWFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    repo = InMemoryItemRepository()
    persistence._repository_instance = repo
    return repo


def test_workflow_load_and_list(tmp_path, monkeypatch):
    _setup_repo(tmp_path, monkeypatch)
    path = tmp_path / "workflows.yaml"
    path.write_text(WORKFLOWS)

    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "load", str(path)])
    assert result.exit_code == 0, result.output
    assert "Loaded 2 workflow(s)" in result.output

    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0, result.output
    assert "wf-blog\tb1\tBlog\t2 step(s)" in result.output
    assert "wf-claims" in result.output

    result = runner.invoke(app, ["workflow", "list", "--brand", "b1"])
    assert "wf-claims" not in result.output


def test_workflow_load_rejects_bad_files(tmp_path, monkeypatch):
    _setup_repo(tmp_path, monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "load", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "does not exist" in result.output

    bad = tmp_path / "bad.yaml"
    bad.write_text(
        """
workflows:
  - id: wf-gap
    brand_id: b1
    steps:
      - {order: 0, role: editor}
      - {order: 2, role: admin}
"""
    )
    result = runner.invoke(app, ["workflow", "load", str(bad)])
    assert result.exit_code == 1
    assert "Invalid workflow file" in result.output


def test_workflow_list_empty(tmp_path, monkeypatch):
    _setup_repo(tmp_path, monkeypatch)

    result = CliRunner().invoke(app, ["workflow", "list"])

    assert result.exit_code == 0
    assert "No workflows found" in result.output


def test_unreachable_store_reports_reason(tmp_path, monkeypatch):
    monkeypatch.setenv("REVIEWFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv(
        "REVIEWFLOW_DATABASE_URL", f"sqlite://{tmp_path / 'nope' / 'reviews.db'}"
    )
    persistence._repository_instance = None

    result = CliRunner().invoke(app, ["workflow", "list"])

    assert result.exit_code == 1
    assert "Cannot open SQLite database" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_incomplete_notifier_config_reports_reason(tmp_path, monkeypatch):
    _setup_repo(tmp_path, monkeypatch)
    monkeypatch.setenv("REVIEWFLOW_NOTIFIER", "webhook")

    result = CliRunner().invoke(app, ["workflow", "list"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
    assert "notifier.webhook.url" in result.output
