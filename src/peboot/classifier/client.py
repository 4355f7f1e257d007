# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/classifier/client.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from peboot.classifier.models import ClassificationGroup
from peboot.config.models import ClassifierSpec, GroupDefinition
from peboot.errors import ClassifierError, ConsistencyError

log = logging.getLogger("peboot")


def classifier_session(spec: ClassifierSpec, certname: str) -> requests.Session:
    """
    Session authenticated with the primary's own agent certificate. The
    classifier only trusts that certificate from localhost, so this only
    works on the primary node.
    """
    ssl_dir = Path(spec.ssl_dir)
    session = requests.Session()
    session.cert = (
        str(ssl_dir / "certs" / f"{certname}.pem"),
        str(ssl_dir / "private_keys" / f"{certname}.pem"),
    )
    session.verify = str(ssl_dir / "certs" / "ca.pem")
    session.headers.update({"Content-Type": "application/json"})
    return session


class ClassifierClient:
    """
    Node classifier API wrapper:
      - list / find groups (name lookups must be unique)
      - read class parameters (the read half of every read-compare-write)
      - pin nodes, set class parameters, create groups, refresh classes

    Every write may trigger agent runs elsewhere, so callers gate writes with
    class_params_match() and skip both the write and its follow-up runs.
    """

    def __init__(
        self,
        *,
        base_url: str,
        session: requests.Session,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    @classmethod
    def for_primary(cls, spec: ClassifierSpec, primary: str) -> "ClassifierClient":
        base = f"https://{primary}:{spec.port}{spec.base_path}"
        return cls(
            base_url=base,
            session=classifier_session(spec, primary),
            timeout=spec.timeout_seconds,
        )

    # -----------------------
    # HTTP helpers
    # -----------------------
    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self._url(path)
        log.debug(f"[classifier] {method} {url} params={kwargs.get('params')} json={kwargs.get('json')}")
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ClassifierError(f"{method} {url} failed: {e}") from e
        log.debug(f"[classifier] response: status={r.status_code}")
        if r.status_code < 200 or r.status_code >= 300:
            raise ClassifierError(f"{method} {url} failed: {r.status_code} {r.text}")
        return r

    # -----------------------
    # Reads
    # -----------------------
    def list_groups(self) -> List[ClassificationGroup]:
        r = self._request("GET", "/groups")
        return [ClassificationGroup.model_validate(g) for g in r.json()]

    def find_groups(self, name: str) -> List[ClassificationGroup]:
        return [g for g in self.list_groups() if g.name == name]

    def find_group_id(self, name: str) -> str:
        matches = self.find_groups(name)
        if len(matches) != 1:
            raise ConsistencyError(
                f'Group name "{name}" matched {len(matches)} classification groups, expected exactly one'
            )
        return matches[0].id

    def get_group(self, group_id: str) -> ClassificationGroup:
        r = self._request("GET", f"/groups/{group_id}")
        return ClassificationGroup.model_validate(r.json())

    def get_class_param(self, group_id: str, class_name: str, param_name: str) -> Any:
        return self.get_group(group_id).class_param(class_name, param_name)

    def class_params_match(self, group_id: str, classes: Dict[str, Dict[str, Any]]) -> bool:
        """
        True when every desired parameter already holds the desired value.
        A class with no parameters matches when the class is present.
        """
        group = self.get_group(group_id)
        for class_name, params in classes.items():
            if not params:
                if class_name not in group.classes:
                    return False
                continue
            for param_name, desired in params.items():
                if group.class_param(class_name, param_name) != desired:
                    return False
        return True

    # -----------------------
    # Writes
    # -----------------------
    def pin_node(self, group_id: str, subject: str) -> bool:
        """
        Pin *subject* to the group. Returns False when it already was pinned
        and no request was made.
        """
        if subject in self.get_group(group_id).pinned_nodes():
            log.debug(f"[classifier] {subject} already pinned to {group_id}")
            return False
        # the API treats re-pinning as success as well
        self._request("POST", f"/groups/{group_id}/pin", params={"nodes": subject})
        return True

    def set_class_params(self, group_id: str, classes: Dict[str, Dict[str, Any]]) -> None:
        self._request("POST", f"/groups/{group_id}", json={"id": group_id, "classes": classes})

    def create_group(self, definition: GroupDefinition) -> Optional[ClassificationGroup]:
        r = self._request("POST", "/groups", json=definition.model_dump(exclude_none=True))
        # 303 to the new group is followed by requests; older servers answer 201 with no body
        if r.content:
            return ClassificationGroup.model_validate(r.json())
        return None

    def update_classes(self) -> None:
        self._request("POST", "/update-classes")
