import json

import pytest

from ellipsoid_dome.parameters import (
    FT_TO_M,
    ShellParameters,
    apply_overrides,
    headroom_to_base,
    load_json_config,
    load_parameters,
    parse_cli_overrides,
)


def test_defaults_are_valid():
    params = ShellParameters()
    params.validate()
    assert params.semi_length_m == pytest.approx(4.572)
    assert params.base_m == pytest.approx(-0.6096)
    ell = params.ellipsoid()
    assert ell.semi_axes == pytest.approx((4.572, 3.962, 3.048), abs=1e-3)


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(KeyError):
        ShellParameters.from_dict({"diameter": 3.0})


@pytest.mark.parametrize(
    "override",
    [
        {"semi_width_m": 0.0},
        {"base_m": 5.0},
        {"panel_size_m": -1.0},
        {"panel_size_m": 100.0},
        {"tolerance_m": 0.0},
        {"max_passes": 0},
        {"relax_damping": 1.5},
        {"solid_name": "two words"},
    ],
)
def test_invalid_values_are_rejected(override):
    with pytest.raises(ValueError):
        apply_overrides(ShellParameters(), override)


def test_apply_overrides_copies():
    base = ShellParameters()
    updated = apply_overrides(base, {"panel_size_m": 0.8})
    assert updated.panel_size_m == 0.8
    assert base.panel_size_m == 1.1
    with pytest.raises(KeyError):
        apply_overrides(base, {"panel": 0.8})


def test_headroom_to_base():
    assert headroom_to_base(12 * FT_TO_M, 10 * FT_TO_M) == pytest.approx(-2 * FT_TO_M)
    assert headroom_to_base(2.0, 2.0) == 0.0


class TestConfigLayers:
    def test_no_config_gives_empty_layer(self):
        assert load_json_config(None) == {}

    def test_missing_config_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_json_config(tmp_path / "absent.json")

    def test_non_object_config_raises(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_json_config(path)

    def test_cli_beats_json(self, tmp_path):
        path = tmp_path / "shell.json"
        path.write_text(
            json.dumps({"panel_size_m": 0.9, "material": "mild_steel"}), encoding="utf-8"
        )
        params = load_parameters(path, {"panel_size_m": 0.7})
        assert params.panel_size_m == 0.7
        assert params.material == "mild_steel"

    def test_headroom_in_json_uses_final_height(self, tmp_path):
        path = tmp_path / "shell.json"
        path.write_text(json.dumps({"headroom_m": 2.5}), encoding="utf-8")
        params = load_parameters(
            path, {"semi_length_m": 3.0, "semi_width_m": 2.0, "semi_height_m": 2.0}
        )
        assert params.base_m == pytest.approx(-0.5)

    def test_cli_headroom_replaces_json_base(self, tmp_path):
        path = tmp_path / "shell.json"
        path.write_text(json.dumps({"base_m": 0.5}), encoding="utf-8")
        params = load_parameters(path, {"headroom_m": 3.0})
        assert params.base_m == pytest.approx(ShellParameters().semi_height_m - 3.0)


class TestCliOverrides:
    def test_size_and_panel_flags(self):
        overrides, parsed = parse_cli_overrides(
            ["--size", "3", "2.5", "2", "--panel-size", "0.8", "--relax", "10"]
        )
        assert overrides == {
            "semi_length_m": 3.0,
            "semi_width_m": 2.5,
            "semi_height_m": 2.0,
            "panel_size_m": 0.8,
            "relax_iterations": 10,
        }
        assert parsed.out_dir == "exports"
        assert parsed.skip_stl is False

    def test_headroom_is_resolved_later(self):
        overrides, _ = parse_cli_overrides(["--headroom", "3.5"])
        assert overrides == {"headroom_m": 3.5}

    def test_base_and_headroom_conflict(self):
        with pytest.raises(ValueError):
            parse_cli_overrides(["--base", "0", "--headroom", "3"])

    def test_unknown_args_are_ignored(self):
        overrides, _ = parse_cli_overrides(["--frobnicate", "--gauge", "16ga"])
        assert overrides == {"gauge": "16ga"}

    def test_no_args_no_overrides(self):
        overrides, parsed = parse_cli_overrides([])
        assert overrides == {}
        assert parsed.config is None


class TestHeadroomOnLowShells:
    """Headroom resolves against the final height before anything is validated."""

    def test_cli_size_and_headroom(self):
        overrides, _ = parse_cli_overrides(
            ["--size", "1", "1", "0.5", "--headroom", "0.8", "--panel-size", "0.3"]
        )
        params = load_parameters(None, overrides)
        assert params.semi_height_m == 0.5
        assert params.base_m == pytest.approx(-0.3)

    def test_json_size_and_headroom(self, tmp_path):
        path = tmp_path / "low.json"
        path.write_text(
            json.dumps(
                {
                    "semi_length_m": 1,
                    "semi_width_m": 1,
                    "semi_height_m": 0.5,
                    "panel_size_m": 0.3,
                    "headroom_m": 0.8,
                }
            ),
            encoding="utf-8",
        )
        assert load_parameters(path).base_m == pytest.approx(-0.3)

    def test_cli_base_beats_json_headroom(self, tmp_path):
        path = tmp_path / "shell.json"
        path.write_text(json.dumps({"headroom_m": 3.0}), encoding="utf-8")
        assert load_parameters(path, {"base_m": 0.25}).base_m == 0.25

    def test_headroom_still_validated(self):
        with pytest.raises(ValueError):
            load_parameters(
                None, {"semi_height_m": 0.5, "panel_size_m": 0.3, "headroom_m": 1.2}
            )


def test_max_vertices_flag():
    overrides, _ = parse_cli_overrides(["--max-vertices", "5000"])
    assert overrides == {"max_vertices": 5000}
    assert load_parameters(None, overrides).max_vertices == 5000
    with pytest.raises(ValueError):
        load_parameters(None, {"max_vertices": 3})
