# slidefy/infrastructure/catalog/template_catalog.py
import base64
import json
import logging
import os
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from slidefy.delivery.schemas.body import TemplateData, TemplateSummary
from slidefy.domain.errors import TemplateNotFoundError

logger = logging.getLogger(__name__)

INDEX_FILE = "template-index.json"
THUMBNAIL_MIME = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}


class TemplateCatalog:
    """Read-only set of templates keyed by id."""

    def __init__(self, templates: Iterable[TemplateData], summaries: Optional[List[TemplateSummary]] = None):
        self._templates: Dict[str, TemplateData] = {t.id: t for t in templates}
        self._summaries = summaries if summaries is not None else [
            TemplateSummary(id=t.id, name=t.name, slides=t.slides) for t in self._templates.values()
        ]

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def get(self, template_id: str) -> TemplateData:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def summaries(self) -> List[TemplateSummary]:
        return list(self._summaries)

    @classmethod
    def from_directory(cls, templates_dir: str) -> "TemplateCatalog":
        index_path = os.path.join(templates_dir, INDEX_FILE)
        if not os.path.isfile(index_path):
            logger.warning(f"Index template tidak ditemukan: {index_path}, katalog kosong.")
            return cls([])

        with open(index_path, "r", encoding="utf-8") as f:
            index = json.load(f)

        templates: List[TemplateData] = []
        summaries: List[TemplateSummary] = []
        for entry in index:
            template_path = os.path.join(templates_dir, entry["file"])
            if not os.path.isfile(template_path):
                logger.warning(f"Template tidak ditemukan: {entry['file']}")
                continue
            try:
                with open(template_path, "r", encoding="utf-8") as f:
                    template = TemplateData.model_validate(json.load(f))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Template '{entry['file']}' tidak valid: {e}")
                continue

            templates.append(template)
            summaries.append(TemplateSummary(
                id=template.id,
                name=entry.get("name", template.name),
                slides=entry.get("slides", template.slides),
                thumbnail=_thumbnail_data_url(templates_dir, entry.get("thumbnail")),
            ))

        logger.info(f"{len(templates)} template dimuat dari {templates_dir}.")
        return cls(templates, summaries)


def _thumbnail_data_url(templates_dir: str, thumbnail: Optional[str]) -> str:
    if not thumbnail:
        return ""
    path = thumbnail if os.path.isabs(thumbnail) else os.path.join(templates_dir, thumbnail)
    if not os.path.isfile(path):
        return ""
    mime = THUMBNAIL_MIME.get(os.path.splitext(path)[1].lower(), "image/png")
    with open(path, "rb") as f:
        return f"data:{mime};base64,{base64.b64encode(f.read()).decode('ascii')}"
