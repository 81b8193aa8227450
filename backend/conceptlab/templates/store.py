import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from conceptlab.cache import CacheBackend
from conceptlab.config import PROMPT_TEMPLATES_DIR
from conceptlab.ir.operations import TEMPLATE_FOR_OPERATION

logger = logging.getLogger(__name__)

CACHE_KEY = "prompt_templates"
CACHE_TTL = 3600


@dataclass
class PromptTemplate:
    name: str
    template: str
    description: str = ""
    parameters: List[str] = field(default_factory=list)
    expected_response_structure: Optional[Dict[str, Any]] = None
    fallback_strategy: Optional[str] = None

    def __post_init__(self):
        # ordered set: keep first occurrence of each name
        self.parameters = list(dict.fromkeys(self.parameters))

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "PromptTemplate":
        if not isinstance(data, dict):
            raise ValueError("template body must be a mapping")
        text = data.get("template")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("template text is missing")
        params = data.get("parameters") or []
        if not isinstance(params, list) or not all(isinstance(p, str) for p in params):
            raise ValueError("parameters must be a list of strings")
        return cls(
            name=data.get("name", name),
            template=text,
            description=data.get("description", ""),
            parameters=params,
            expected_response_structure=data.get("expected_response_structure"),
            fallback_strategy=data.get("fallback_strategy"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "description": self.description,
            "template": self.template,
            "parameters": list(self.parameters),
        }
        if self.expected_response_structure is not None:
            data["expected_response_structure"] = self.expected_response_structure
        if self.fallback_strategy is not None:
            data["fallback_strategy"] = self.fallback_strategy
        return data


class PromptTemplateStore:
    """
    Named prompt templates backed by a directory of YAML files.

    Directory structure:
    prompts/
        graph_validation.yaml
        category_enrichment.yaml
        ...

    The full set is loaded on first access and mirrored into a shared
    cache under ``prompt_templates``. Every write goes to disk, memory and
    the shared cache before the lock is released.
    """

    EXPECTED_TEMPLATES = sorted(set(TEMPLATE_FOR_OPERATION.values()))

    def __init__(
        self,
        templates_dir: Optional[str] = None,
        cache: Optional[CacheBackend] = None,
        cache_ttl: int = CACHE_TTL,
    ):
        self.templates_dir = templates_dir or PROMPT_TEMPLATES_DIR
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._lock = threading.RLock()
        self._templates: Dict[str, PromptTemplate] = {}
        self._loaded = False

    # --------------------------------------------------------
    # Loading
    # --------------------------------------------------------

    def _path(self, name: str) -> str:
        return os.path.join(self.templates_dir, f"{name}.yaml")

    def _ensure_loaded(self) -> None:
        with self._lock:
            if self._loaded:
                return
            if self._load_from_cache():
                self._loaded = True
                return
            self._load_from_directory()
            self._publish()
            self._loaded = True

    def _load_from_cache(self) -> bool:
        if self.cache is None:
            return False
        try:
            raw = self.cache.get(CACHE_KEY)
        except Exception as e:
            logger.warning("[PromptTemplateStore] Cache read failed: %s", e)
            return False
        if not raw:
            return False
        try:
            data = json.loads(raw)
            templates = {
                name: PromptTemplate.from_dict(name, body) for name, body in data.items()
            }
        except (ValueError, AttributeError) as e:
            logger.warning("[PromptTemplateStore] Ignoring malformed cached templates: %s", e)
            return False
        self._templates = templates
        logger.info("[PromptTemplateStore] Loaded %d templates from cache", len(templates))
        return True

    def _load_from_directory(self) -> None:
        self._templates = {}
        if not os.path.isdir(self.templates_dir):
            logger.error("[PromptTemplateStore] Template directory missing: %s", self.templates_dir)
            return

        for filename in sorted(os.listdir(self.templates_dir)):
            stem, ext = os.path.splitext(filename)
            if ext not in (".yaml", ".yml"):
                continue
            path = os.path.join(self.templates_dir, filename)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
                self._templates[stem] = PromptTemplate.from_dict(stem, data)
                logger.debug("[PromptTemplateStore] Loaded template: %s", stem)
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning("[PromptTemplateStore] Skipping template %s: %s", stem, e)

        for name in self.EXPECTED_TEMPLATES:
            if name not in self._templates:
                logger.warning("[PromptTemplateStore] Expected template not loaded: %s", name)

        logger.info(
            "[PromptTemplateStore] Loaded %d templates from %s",
            len(self._templates),
            self.templates_dir,
        )

    def _publish(self) -> None:
        if self.cache is None:
            return
        payload = json.dumps(
            {name: t.to_dict() for name, t in self._templates.items()},
            ensure_ascii=False,
        )
        try:
            self.cache.set(CACHE_KEY, payload, self.cache_ttl)
        except Exception as e:
            logger.warning("[PromptTemplateStore] Cache write failed: %s", e)
            # a stale shared copy is worse than none
            try:
                self.cache.delete(CACHE_KEY)
            except Exception as e2:
                logger.warning("[PromptTemplateStore] Cache invalidation failed: %s", e2)

    def _write_file(self, name: str, template: PromptTemplate) -> None:
        os.makedirs(self.templates_dir, exist_ok=True)
        with open(self._path(name), "w", encoding="utf-8") as f:
            yaml.safe_dump(
                template.to_dict(),
                f,
                allow_unicode=True,
                sort_keys=False,
                default_flow_style=False,
            )

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def get(self, name: str) -> Optional[PromptTemplate]:
        self._ensure_loaded()
        with self._lock:
            template = self._templates.get(name)
        if template is None:
            logger.warning("[PromptTemplateStore] Template not found: %s", name)
        return template

    def list_names(self) -> List[str]:
        self._ensure_loaded()
        with self._lock:
            return list(self._templates.keys())

    def create(self, name: str, template: PromptTemplate) -> bool:
        self._ensure_loaded()
        with self._lock:
            if name in self._templates:
                logger.warning("[PromptTemplateStore] Template already exists: %s", name)
                return False
            try:
                self._write_file(name, template)
            except OSError as e:
                logger.error("[PromptTemplateStore] Failed to write template %s: %s", name, e)
                return False
            self._templates[name] = template
            self._publish()
        logger.info("[PromptTemplateStore] Template created: %s", name)
        return True

    def update(self, name: str, template: PromptTemplate) -> bool:
        self._ensure_loaded()
        with self._lock:
            if name not in self._templates:
                logger.warning("[PromptTemplateStore] Cannot update non-existent template: %s", name)
                return False
            try:
                self._write_file(name, template)
            except OSError as e:
                logger.error("[PromptTemplateStore] Failed to write template %s: %s", name, e)
                return False
            self._templates[name] = template
            self._publish()
        logger.info("[PromptTemplateStore] Template updated: %s", name)
        return True

    def delete(self, name: str) -> bool:
        self._ensure_loaded()
        with self._lock:
            if name not in self._templates:
                logger.warning("[PromptTemplateStore] Cannot delete non-existent template: %s", name)
                return False
            try:
                os.remove(self._path(name))
            except FileNotFoundError:
                pass
            del self._templates[name]
            self._publish()
        logger.info("[PromptTemplateStore] Template deleted: %s", name)
        return True
