import pytest

from density_overlay.config import OverlayConfig, get_config, reset_config, set_config


def test_defaults():
    cfg = get_config()
    assert cfg.radius_scale == 40.0
    assert cfg.color_stops() == (
        (0.0, (59.0, 130.0, 246.0, 0.6)),
        (0.5, (99.0, 102.0, 241.0, 0.2)),
        (1.0, (0.0, 0.0, 0.0, 0.0)),
    )
    assert (cfg.center_lat, cfg.center_lon, cfg.zoom) == (19.0760, 72.8777, 11)


def test_set_config_replaces_shared_instance():
    before = get_config()
    after = set_config(radius_scale=25.0)
    assert after is get_config()
    assert after.radius_scale == 25.0
    assert before.radius_scale == 40.0
    assert reset_config().radius_scale == 40.0


def test_unknown_key_raises():
    with pytest.raises(TypeError):
        set_config(radius=3)


def test_mid_stop_kept_strictly_inside():
    stops = OverlayConfig(mid_stop=1.0).color_stops()
    assert 0.0 < stops[1][0] < 1.0
    assert "urgency_weights" in OverlayConfig().to_dict()


def test_settings_map_onto_config():
    settings_dialog = pytest.importorskip("density_overlay.settings_dialog")
    s = settings_dialog.OverlaySettings(radius_scale=25.0, core_alpha=1.5, mid_alpha=-0.2,
                                        visibility_margin_px=12, basemap_theme="light")
    cfg = s.to_config(OverlayConfig())
    assert cfg.radius_scale == 25.0
    assert cfg.core_color == (59.0, 130.0, 246.0, 1.0)
    assert cfg.mid_color == (99.0, 102.0, 241.0, 0.0)
    assert cfg.visibility_margin_px == 12.0
    assert cfg.basemap_theme == "light"

    back = settings_dialog.OverlaySettings.from_config(cfg)
    assert back.core_alpha == 1.0
    assert back.basemap_theme == "light"
