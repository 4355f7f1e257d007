# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/classifier/customize.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from peboot.classifier.client import ClassifierClient
from peboot.config.models import CustomizationSpec, GroupDefinition
from peboot.errors import ConsistencyError
from peboot.observers.dispatcher import EventBus
from peboot.observers.events import StepSkipped, StepStarted

log = logging.getLogger("peboot")


class ClassificationCustomizer:
    """
    Minimal, idempotent classifier customization to match a hand-configured
    reference install:
      - refresh class definitions
      - ensure class parameters on existing groups
      - ensure extra groups exist (created under "All Nodes")
    """

    def __init__(
        self,
        *,
        client: ClassifierClient,
        spec: CustomizationSpec,
        host: str,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.client = client
        self.spec = spec
        self.host = host
        self.bus = bus or EventBus()
        self.run_id = run_id

    def _emit(self, event_cls, message: str) -> None:
        self.bus.emit(event_cls(role="customize", host=self.host, message=message, run_id=self.run_id))

    # -----------------------
    # Class parameters
    # -----------------------
    def ensure_class_params(self, group: str, classes: Dict[str, Dict[str, Any]]) -> bool:
        group_id = self.client.find_group_id(group)
        if self.client.class_params_match(group_id, classes):
            self._emit(StepSkipped, f'"{group}" group already configured')
            return False
        self._emit(StepStarted, f'Configuring "{group}" group')
        self.client.set_class_params(group_id, classes)
        return True

    # -----------------------
    # Groups
    # -----------------------
    def ensure_group(self, definition: GroupDefinition) -> bool:
        matches = self.client.find_groups(definition.name)
        if len(matches) > 1:
            raise ConsistencyError(
                f'Group name "{definition.name}" matched {len(matches)} classification groups'
            )
        if matches:
            self._emit(StepSkipped, f"'{definition.name}' classification group exists")
            return False
        self._emit(StepStarted, f"Creating the '{definition.name}' classification group")
        self.client.create_group(definition)
        return True

    def run(self) -> List[str]:
        """Returns the names of groups that were written."""
        changed: List[str] = []
        if self.spec.refresh_classes:
            self._emit(StepStarted, "Trigger refresh of class definitions")
            self.client.update_classes()

        for group, classes in self.spec.class_params.items():
            if self.ensure_class_params(group, classes):
                changed.append(group)

        for definition in self.spec.groups:
            if self.ensure_group(definition):
                changed.append(definition.name)

        log.info(f"classification customization changed: {changed or 'nothing'}")
        return changed
