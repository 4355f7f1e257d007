# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/classifier/models.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClassificationGroup(BaseModel):
    """
    A node group as returned by the classifier. Owned by the service; this
    tool only reads it and conditionally writes class parameters and pins.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    environment: Optional[str] = None
    parent: Optional[str] = None
    rule: Optional[List[Any]] = None
    classes: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def class_param(self, class_name: str, param_name: str) -> Any:
        return (self.classes.get(class_name) or {}).get(param_name)

    def pinned_nodes(self) -> List[str]:
        """
        Certnames pinned to the group: every ["=", "name", <certname>] term of
        the rule, at any depth.
        """
        found: List[str] = []

        def _walk(term: Any) -> None:
            if not isinstance(term, list):
                return
            if len(term) == 3 and term[0] == "=" and term[1] == "name" and isinstance(term[2], str):
                found.append(term[2])
                return
            for sub in term[1:]:
                _walk(sub)

        _walk(self.rule)
        return found
