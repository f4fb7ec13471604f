"""One entry point for all three import sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from erd_core.classifier import ContentType, classify_or_raise
from erd_core.config import ImportConfig
from erd_core.dbml import parse_dbml
from erd_core.ddl import parse_ddl
from erd_core.ddl.base import ParseState
from erd_core.engines import Engine, parse_engine
from erd_core.errors import DBMLSyntaxError
from erd_core.issues import ParseError
from erd_core.metadata import load_payload, normalize, select_tables
from erd_core.model import Diagram

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    diagram: Diagram
    content_type: ContentType
    warnings: List[str] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        lines = [
            f"Source: {self.content_type.value}",
            f"Tables: {len(self.diagram.tables)}",
            f"Relationships: {len(self.diagram.relationships)}",
        ]
        if self.warnings:
            lines.append(f"Warnings: {len(self.warnings)}")
            for w in self.warnings:
                lines.append(f"  - {w}")
        if self.errors:
            lines.append(f"Errors: {len(self.errors)}")
            for e in self.errors:
                lines.append(f"  - {e.describe()}")
        return "\n".join(lines)


def _content_type(text: str, content_type: Union[str, ContentType, None]) -> ContentType:
    if content_type is None or content_type == "auto":
        return classify_or_raise(text)
    return ContentType(content_type)


def import_text(
    text: str,
    engine: Union[str, Engine, None] = None,
    content_type: Union[str, ContentType, None] = None,
    config: Optional[ImportConfig] = None,
    tables: Optional[Sequence[str]] = None,
) -> ImportResult:
    """Classify ``text`` (unless told what it is) and run the matching importer.

    Parse failures come back on the result. ClassificationAmbiguous and
    MetadataValidationError are raised.
    """
    config = config or ImportConfig()
    engine = parse_engine(engine) if engine is not None else config.engine
    kind = _content_type(text, content_type)
    logger.debug("importing %s input for %s", kind.value, engine.value)

    if kind == ContentType.DDL:
        outcome = parse_ddl(text, engine, config)
        return ImportResult(
            diagram=outcome.to_diagram(config.diagram_name),
            content_type=kind,
            warnings=list(outcome.warnings),
            errors=list(outcome.errors),
            failed=outcome.state == ParseState.FAILED,
        )

    if kind == ContentType.DBML:
        try:
            result = parse_dbml(text)
        except DBMLSyntaxError as exc:
            logger.warning("DBML import failed: %s", exc)
            return ImportResult(
                diagram=Diagram(name=config.diagram_name, database_type=engine),
                content_type=kind,
                errors=[ParseError(line=exc.line or 1, message=exc.message, column=exc.column)],
                failed=True,
            )
        return ImportResult(diagram=result.diagram, content_type=kind, warnings=list(result.warnings))

    payload = load_payload(text)
    if tables:
        payload = select_tables(payload, tables)
    result = normalize(payload, engine, validate=config.validate_metadata)
    return ImportResult(diagram=result.diagram, content_type=kind, warnings=list(result.warnings))
