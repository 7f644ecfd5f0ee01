from pathlib import Path

import pytest

from trackflow.rules.loader import load_rules
from trackflow.rules.models import Rules


def test_loads_project_rules(rules: Rules) -> None:
    assert rules.project.slug == "trackflow"
    assert "pageview" in rules.ingestion.allowed_event_types
    assert rules.analytics.periods["7d"] == 7
    assert rules.classifier.search[0].source == "google"


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_rules(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("project: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_rules(path)


def test_schema_violation(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(Path("rules.yaml").read_text().replace("max_limit: 100", "max_limit: 0"))
    with pytest.raises(ValueError, match="validation failed"):
        load_rules(path)
