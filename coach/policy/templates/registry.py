# coach/policy/templates/registry.py
from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional, Tuple

from coach.engine.errors import ErrorCode, PolicyError

from .base import Template
from .builtin import build_builtin_templates


class TemplateRegistry:
    """Ordered, immutable set of templates. Order breaks score ties."""

    def __init__(self, templates: Iterable[Template]):
        self._templates: Tuple[Template, ...] = tuple(templates)
        if not self._templates:
            raise PolicyError(ErrorCode.ERR_EMPTY_REGISTRY, "template registry must not be empty")
        self._by_id: Dict[str, Template] = {}
        for t in self._templates:
            if not t.id:
                raise PolicyError(ErrorCode.ERR_GENERIC, f"template without id: {t!r}")
            if t.id in self._by_id:
                raise PolicyError(ErrorCode.ERR_DUPLICATE_TEMPLATE, f"duplicate template id {t.id!r}", {"id": t.id})
            self._by_id[t.id] = t
        for t in self._templates:
            for ref in t.branch_ids + ((t.exit_id,) if t.exit_id else ()):
                if ref not in self._by_id:
                    raise PolicyError(ErrorCode.ERR_UNKNOWN_TEMPLATE,
                                      f"{t.id!r} refers to unknown template {ref!r}", {"id": t.id, "ref": ref})

    @property
    def templates(self) -> Tuple[Template, ...]:
        return self._templates

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(t.id for t in self._templates)

    def get(self, template_id: Optional[str]) -> Optional[Template]:
        return self._by_id.get(template_id) if template_id else None

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._by_id

    def __iter__(self) -> Iterator[Template]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


def default_registry() -> TemplateRegistry:
    return TemplateRegistry(build_builtin_templates())
