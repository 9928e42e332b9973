"""Tests for the guide:build and guide:dist units."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from buildwatch.config import parse_config_string
from buildwatch.exceptions import ConfigError, TaskError
from buildwatch.guide import GuideRenderer, JsonGuideRenderer, build_guide, dist_guide, read_package

CONFIG = """
config:
  build: build
  dist: dist
guide:
  patterns: "src/guide/*.yaml"
  dest: guide
"""


@pytest.fixture
def project(tmp_path):
    guide = tmp_path / "src" / "guide"
    guide.mkdir(parents=True)
    (guide / "index.yaml").write_text("title: Guide\n")
    (guide / "button.yaml").write_text("label: Click\n")
    (tmp_path / "package.json").write_text('{"name": "site", "version": "1.2.0"}')
    return tmp_path


class TestReadPackage:
    """Tests for read_package."""

    def test_reads_json(self, project):
        assert read_package(project / "package.json")['name'] == 'site'

    def test_missing(self, tmp_path):
        assert read_package(tmp_path / "package.json") == {}


class TestBuildGuide:
    """Tests for guide:build."""

    def test_renderer_receives_fresh_aggregate(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        renderer = MagicMock(spec=GuideRenderer)
        unit = build_guide(config, renderer)

        assert asyncio.run(unit.run()) is None

        kwargs = renderer.render.call_args.kwargs
        assert kwargs['package'] == {'name': 'site', 'version': '1.2.0'}
        assert kwargs['guide'] == {'title': 'Guide', 'button': {'label': 'Click'}}
        assert kwargs['config'] is config
        assert kwargs['destination'] == config.build_dir

    def test_edit_between_runs(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        renderer = MagicMock(spec=GuideRenderer)
        unit = build_guide(config, renderer)

        asyncio.run(unit.run())
        (project / "src" / "guide" / "button.yaml").write_text("label: Press\n")
        asyncio.run(unit.run())

        first, second = renderer.render.call_args_list
        assert first.kwargs['guide']['button'] == {'label': 'Click'}
        assert second.kwargs['guide']['button'] == {'label': 'Press'}

    def test_renderer_failure_is_not_fatal(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        renderer = MagicMock(spec=GuideRenderer)
        renderer.render.side_effect = RuntimeError("template missing")

        with capture_logs() as logs:
            assert asyncio.run(build_guide(config, renderer).run()) is None

        skipped = [e for e in logs if e["event"] == "guide_render_skipped"]
        assert len(skipped) == 1
        assert skipped[0]["log_level"] == "error"
        assert skipped[0]["exc_info"] is True

    def test_fragment_failure_fails_unit(self, project):
        (project / "src" / "guide" / "index.yaml").unlink()
        config = parse_config_string(CONFIG, base_path=project)

        failure = asyncio.run(build_guide(config, MagicMock(spec=GuideRenderer)).run())

        assert isinstance(failure, TaskError)

    def test_requires_guide_section(self, project):
        config = parse_config_string("config: {}", base_path=project)
        with pytest.raises(ConfigError):
            build_guide(config, JsonGuideRenderer())

    def test_unit_name(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        assert build_guide(config, JsonGuideRenderer()).name == 'guide:build'


class TestJsonRenderer:
    """Tests for JsonGuideRenderer and guide:dist."""

    def test_writes_document(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        asyncio.run(build_guide(config, JsonGuideRenderer()).run())

        document = json.loads((project / "build" / "guide" / "guide.json").read_text())
        assert document == {
            'name': 'site',
            'version': '1.2.0',
            'guide': {'title': 'Guide', 'button': {'label': 'Click'}},
        }

    def test_output_identical_across_runs(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        unit = build_guide(config, JsonGuideRenderer())
        target = project / "build" / "guide" / "guide.json"

        asyncio.run(unit.run())
        first = target.read_bytes()
        asyncio.run(unit.run())

        assert target.read_bytes() == first

    def test_dist_copies_built_guide(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        asyncio.run(build_guide(config, JsonGuideRenderer()).run())

        assert asyncio.run(dist_guide(config).run()) is None
        assert (project / "dist" / "guide" / "guide.json").exists()

    def test_dist_without_build(self, project):
        config = parse_config_string(CONFIG, base_path=project)
        assert asyncio.run(dist_guide(config).run()) is None
        assert not (project / "dist" / "guide").exists()
