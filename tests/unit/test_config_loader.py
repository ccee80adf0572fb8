"""Tests for YAML geometry settings loader."""

from __future__ import annotations

import pytest

from formula3d.config_loader import load_settings_from_yaml
from formula3d.settings import GeometrySettings


def test_loads_shipped_config(project_root, geometry_config):
    bundle = load_settings_from_yaml(project_root / "config" / "geometry.yaml")
    assert bundle.settings == GeometrySettings()
    assert bundle.settings.iterations == geometry_config["relaxation"]["iterations"]
    assert "description" in bundle.metadata


def test_partial_sections_fall_back_to_defaults(tmp_path):
    path = tmp_path / "geometry.yaml"
    path.write_text("relaxation:\n  iterations: 25\nbuilder:\n  seed: 4\n", encoding="utf-8")
    settings = load_settings_from_yaml(path).settings
    assert settings.iterations == 25
    assert settings.seed == 4
    assert settings.bond_constant == pytest.approx(0.1)
    assert settings.relax_templates is False


def test_non_mapping_root_rejected(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings_from_yaml(path)


@pytest.mark.parametrize(
    "body",
    [
        "relaxation:\n  iterations: -1\n",
        "relaxation: [1, 2]\n",
        "builder:\n  seed: abc\n",
        "metadata: 3\n",
    ],
)
def test_invalid_values_rejected(tmp_path, body):
    path = tmp_path / "geometry.yaml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings_from_yaml(path)


def test_with_overrides_ignores_none():
    settings = GeometrySettings().with_overrides(iterations=10, seed=None)
    assert settings.iterations == 10
    assert settings.seed is None
