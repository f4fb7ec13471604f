import json
import sys
from pathlib import Path

import pytest
import yaml

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.config import ImportConfig, load_config
from erd_core.engines import Engine
from erd_core.errors import ConfigError
from erd_core.loader import diagram_to_text, dump_diagram, load_diagram, load_document
from erd_core.model import DataType, Diagram, Field, Table


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config() == ImportConfig()

    def test_reads_default_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "erd.yaml").write_text("engine: postgresql\nfallback: false\n", encoding="utf-8")
        config = load_config()
        assert config.engine == Engine.POSTGRESQL
        assert config.fallback is False
        assert config.autofix is True

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text(
            "engine: sql_server\nlarge_file_threshold: 500\ndiagram_name: Warehouse\nvalidate_metadata: false\n",
            encoding="utf-8",
        )
        config = load_config(str(path))
        assert config.engine == Engine.SQL_SERVER
        assert config.large_file_threshold == 500
        assert config.diagram_name == "Warehouse"
        assert config.validate_metadata is False

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == ImportConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("engine: postgresql\nstrict: true\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(str(path))

    def test_bad_value_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("large_file_threshold: 0\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- engine\n- mysql\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="object/map"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("engine: [mysql\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_config(str(path))


def _diagram():
    table = Table(name="users", fields=[Field(name="id", type=DataType(id="int"), primary_key=True)])
    return Diagram(name="shop", database_type=Engine.MYSQL, tables=[table])


class TestLoader:
    def test_yaml_round_trip(self, tmp_path):
        diagram = _diagram()
        path = tmp_path / "out" / "shop.yaml"
        dump_diagram(diagram, str(path))
        assert yaml.safe_load(path.read_text(encoding="utf-8"))["database_type"] == "mysql"
        assert load_diagram(str(path)) == diagram

    def test_json_round_trip(self, tmp_path):
        diagram = _diagram()
        path = tmp_path / "shop.json"
        dump_diagram(diagram, str(path))
        assert json.loads(path.read_text(encoding="utf-8"))["name"] == "shop"
        assert load_diagram(str(path)) == diagram

    def test_load_document_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_document(str(tmp_path / "missing.yaml"))
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_document(str(path))

    def test_empty_document(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_document(str(path)) == {}

    def test_diagram_to_text(self):
        diagram = _diagram()
        assert json.loads(diagram_to_text(diagram, "json"))["tables"][0]["name"] == "users"
        assert yaml.safe_load(diagram_to_text(diagram))["name"] == "shop"
