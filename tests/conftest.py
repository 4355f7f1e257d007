import json as _json
import subprocess
import uuid
from urllib.parse import urlparse

import pytest

from peboot.classifier.client import ClassifierClient
from peboot.config.models import PebootConfig
from peboot.inventory import PoolTopology
from peboot.observers.dispatcher import EventBus
from peboot.remote.bridge import RemoteResult
from peboot.roles.base import RoleContext

PRIMARY = "ptmom.example.net"
POOL = "pt-master.example.net"
BASE = f"https://{PRIMARY}:4433/classifier-api/v1"


# ----------------- Classifier fake -----------------

class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = "" if payload is None else _json.dumps(payload)
        self.content = self.text.encode()

    def json(self):
        return self._payload


class FakeClassifierSession:
    """In-memory stand-in for the classifier REST API."""

    def __init__(self, groups=None):
        self.groups = {}
        self.requests = []
        for g in groups or []:
            self.add_group(**g)

    def add_group(self, name, classes=None, rule=None, id=None):
        gid = id or str(uuid.uuid4())
        self.groups[gid] = {
            "id": gid,
            "name": name,
            "environment": "production",
            "parent": "00000000-0000-4000-8000-000000000000",
            "rule": rule,
            "classes": classes or {},
        }
        return gid

    @property
    def posts(self):
        return [r for r in self.requests if r[0] == "POST"]

    def request(self, method, url, timeout=None, params=None, json=None, **kw):
        path = urlparse(url).path.split("/classifier-api/v1", 1)[1]
        self.requests.append((method, path, params, json))
        parts = [p for p in path.split("/") if p]

        if parts == ["groups"] and method == "GET":
            return FakeResponse(200, list(self.groups.values()))
        if parts == ["groups"] and method == "POST":
            gid = self.add_group(json["name"], classes=json.get("classes"), rule=json.get("rule"))
            return FakeResponse(200, self.groups[gid])
        if parts == ["update-classes"]:
            return FakeResponse(201)
        if parts[0] == "groups" and parts[1] not in self.groups:
            return FakeResponse(404, {"kind": "not-found"})
        if len(parts) == 2 and method == "GET":
            return FakeResponse(200, self.groups[parts[1]])
        if len(parts) == 2 and method == "POST":
            group = self.groups[parts[1]]
            for cls, params in json["classes"].items():
                group["classes"].setdefault(cls, {}).update(params)
            return FakeResponse(200, group)
        if len(parts) == 3 and parts[2] == "pin":
            group = self.groups[parts[1]]
            term = ["=", "name", params["nodes"]]
            group["rule"] = ["or", term] if not group["rule"] else group["rule"] + [term]
            return FakeResponse(204)
        return FakeResponse(400, {"kind": "bad-request"})


def pe_groups():
    return [
        {"name": "PE Master", "classes": {"pe_repo": {}}},
        {"name": "PE Infrastructure Agent", "classes": {"puppet_enterprise::profile::agent": {}}},
        {"name": "PE Agent", "classes": {"puppet_enterprise::profile::agent": {}}},
        {"name": "PE Console", "classes": {"puppet_enterprise::profile::console": {}}},
    ]


@pytest.fixture
def classifier_session():
    return FakeClassifierSession(pe_groups())


@pytest.fixture
def classifier(classifier_session):
    return ClassifierClient(base_url=BASE, session=classifier_session)


# ----------------- Execution fakes -----------------

class FakeBridge:
    def __init__(self, exit_status=0, statuses=None):
        self.calls = []
        self.uploads = []
        self.exit_status = exit_status
        self.statuses = statuses or {}

    def exec(self, host, command, *, cancel=None):
        self.calls.append((host, command))
        rc = self.statuses.get((host, command), self.exit_status)
        return RemoteResult(host=host, command=command, output="", exit_status=rc)

    def put_file(self, host, local_path, remote_path):
        self.uploads.append((host, str(local_path), remote_path))


class FakeRunner:
    def __init__(self, returncode=0, stdout=""):
        self.calls = []
        self.returncode = returncode
        self.stdout = stdout

    def run(self, cmd, **kw):
        self.calls.append(list(map(str, cmd)))
        return subprocess.CompletedProcess(args=cmd, returncode=self.returncode, stdout=self.stdout, stderr="")


class FakeCA:
    def __init__(self):
        self.signed = []

    def sign(self, subject, *, allow_dns_alt_names=False):
        self.signed.append((subject, allow_dns_alt_names))


class FakePoller:
    def __init__(self, subject):
        self.subject = subject
        self.calls = 0

    def await_pending_certificate(self, max_attempts=3, interval=5.0, *, cancel=None):
        self.calls += 1
        return self.subject


class RecordingObserver:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


@pytest.fixture
def topology():
    return PoolTopology(primary=PRIMARY, pool_address=POOL)


@pytest.fixture
def make_ctx(topology):
    def _make(hostname=PRIMARY, **kw):
        recorder = kw.pop("recorder", RecordingObserver())
        fields = dict(
            config=PebootConfig(),
            topology=topology,
            hostname=hostname,
            bridge=FakeBridge(),
            runner=FakeRunner(),
            bus=EventBus(observers=[recorder]),
            ca=FakeCA(),
        )
        fields.update(kw)
        ctx = RoleContext(**fields)
        ctx.recorder = recorder
        return ctx

    return _make
