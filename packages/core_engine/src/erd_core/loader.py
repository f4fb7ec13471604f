import json
from pathlib import Path
from typing import Any, Dict

import yaml

from erd_core.model import Diagram

JSON_SUFFIXES = (".json",)


def load_document(path: str) -> Dict[str, Any]:
    """Read a YAML or JSON document whose root is a map."""
    doc_path = Path(path)
    if not doc_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with doc_path.open("r", encoding="utf-8") as handle:
        if doc_path.suffix.lower() in JSON_SUFFIXES:
            data = json.load(handle)
        else:
            data = yaml.safe_load(handle)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ValueError("Document must parse to an object/map at root.")

    return data


def load_diagram(path: str) -> Diagram:
    return Diagram.from_dict(load_document(path))


def dump_diagram(diagram: Diagram, path: str) -> None:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    data = diagram.to_dict()
    with out_path.open("w", encoding="utf-8") as handle:
        if out_path.suffix.lower() in JSON_SUFFIXES:
            json.dump(data, handle, indent=2)
            handle.write("\n")
        else:
            yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)


def diagram_to_text(diagram: Diagram, fmt: str = "yaml") -> str:
    data = diagram.to_dict()
    if fmt == "json":
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
