import json

import numpy as np
import pytest

from omr_grader import template as template_mod
from omr_grader.errors import ConfigError
from omr_grader.template import (
    MarkerPosition,
    OMRTemplate,
    TemplateCache,
    analyze_with_template,
    build_default_template,
    marker_darkness,
    resolve_template_question,
)


def _darken(gray: np.ndarray, marker: MarkerPosition, value: int = 0) -> None:
    h, w = gray.shape[:2]
    x, y, mw, mh = marker.to_pixels(w, h)
    gray[y : y + mh, x : x + mw] = value


def test_default_template_layout():
    t = build_default_template()
    assert t.total_questions == 45
    assert t.options_per_question == 5
    assert len(t.markers) == 45 * 5

    first = t.markers_for(1)[0]
    assert (first.x, first.y) == (59.4, 17.92)
    q21 = t.markers_for(21)[2]
    assert q21.x == pytest.approx(72.4 + 2 * 1.48)
    assert q21.y == pytest.approx(17.92)


def test_reads_single_dark_marker():
    t = build_default_template()
    gray = np.full((1000, 1000), 255, dtype=np.uint8)
    _darken(gray, t.markers_for(1)[2])
    _darken(gray, t.markers_for(40)[4])

    assert analyze_with_template(gray, t) == {1: "3", 40: "5"}


def test_two_dark_markers_are_ambiguous():
    t = build_default_template()
    gray = np.full((1000, 1000), 255, dtype=np.uint8)
    _darken(gray, t.markers_for(2)[0])
    _darken(gray, t.markers_for(2)[1])

    assert analyze_with_template(gray, t) == {}


def test_resolve_needs_dark_and_clear_margin():
    assert resolve_template_question([(1, 100.0), (2, 250.0)]) == "1"
    assert resolve_template_question([(1, 190.0), (2, 250.0)]) is None
    assert resolve_template_question([(1, 100.0), (2, 120.0)]) is None
    assert resolve_template_question([]) is None


def test_marker_outside_image_reads_as_blank():
    gray = np.zeros((10, 10), dtype=np.uint8)
    m = MarkerPosition(1, 1, x=150.0, y=150.0, width=5.0, height=5.0)
    assert marker_darkness(gray, m) == 255.0


def test_from_dict_round_trip_and_errors():
    t = build_default_template()
    assert OMRTemplate.from_dict(t.to_dict()) == t

    with pytest.raises(ConfigError):
        OMRTemplate.from_dict({"name": "x"})
    with pytest.raises(ConfigError):
        OMRTemplate.from_dict({"totalQuestions": 0})
    with pytest.raises(ConfigError):
        OMRTemplate.from_dict({"totalQuestions": 1, "markers": [{"x": 1}]})


def test_cache_loads_each_path_once(tmp_path, monkeypatch):
    path = tmp_path / "template.json"
    path.write_text(json.dumps(build_default_template().to_dict()), encoding="utf-8")

    calls = []
    real_load = template_mod.load_template

    def counting_load(p):
        calls.append(p)
        return real_load(p)

    monkeypatch.setattr(template_mod, "load_template", counting_load)

    cache = TemplateCache()
    first = cache.get(str(path))
    second = cache.get(str(path))

    assert first is second
    assert calls == [str(path)]
    assert len(cache) == 1


def test_load_template_reports_bad_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        template_mod.load_template(str(path))
