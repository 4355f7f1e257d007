import io
import subprocess
import tarfile
import threading
from pathlib import Path

import pytest
import requests

from peboot.config.models import InstallerSpec
from peboot.errors import InstallerError, OperationCancelled, UsageError
from peboot.installer.agent import AgentInstaller
from peboot.installer.vendor import VendorInstaller


class _Runner:
    def __init__(self, returncode=0):
        self.returncode = returncode
        self.calls = []

    def run(self, cmd, **kw):
        self.calls.append((list(cmd), kw))
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr="")


class _Response:
    def __init__(self, body=b"", status=200):
        self.body = body
        self.status = status
        self.text = body.decode(errors="replace")

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def iter_content(self, chunk_size=1):
        yield self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _Session:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, **kw):
        self.calls.append((url, kw))
        return self.response


def _spec(tmp_path: Path, **kw) -> InstallerSpec:
    config = tmp_path / "pe.conf"
    config.write_text("{}\n")
    return InstallerSpec(installers_dir=tmp_path / "installers", config_file=config, **kw)


def _write_tarball(path: Path, top: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = b"#!/bin/bash\nexit 0\n"
    with tarfile.open(path, "w:gz") as tf:
        info = tarfile.TarInfo(f"{top}/puppet-enterprise-installer")
        info.size = len(data)
        info.mode = 0o755
        tf.addfile(info, io.BytesIO(data))


# ----------------- vendor installer -----------------

def test_paths_and_url(tmp_path):
    inst = VendorInstaller(_spec(tmp_path), version="2019.8.1")
    assert inst.tarball_name == "puppet-enterprise-2019.8.1-el-7-x86_64.tar.gz"
    assert inst.tarball_path == tmp_path / "installers" / "PE_2019.8.1" / inst.tarball_name
    assert inst.download_url == (
        "https://pm.puppetlabs.com/puppet-enterprise/2019.8.1/puppet-enterprise-2019.8.1-el-7-x86_64.tar.gz"
    )


def test_unreadable_config(tmp_path):
    spec = InstallerSpec(config_file=tmp_path / "missing.conf")
    with pytest.raises(UsageError, match="Cannot read"):
        VendorInstaller(spec).check_config()


def test_install_from_local_tarball(tmp_path):
    runner = _Runner()
    inst = VendorInstaller(_spec(tmp_path), runner=runner, session=_Session(None))
    _write_tarball(inst.tarball_path, "puppet-enterprise-2018.1.2-el-7-x86_64")

    inst.install()

    (cmd, kw), = runner.calls
    assert cmd == ["./puppet-enterprise-installer", "-c", str(tmp_path / "pe.conf")]
    # extracted tree is removed afterwards
    assert not Path(kw["cwd"]).exists()


def test_installer_failure(tmp_path):
    inst = VendorInstaller(_spec(tmp_path), runner=_Runner(returncode=1), session=_Session(None))
    _write_tarball(inst.tarball_path, "pe")

    with pytest.raises(InstallerError, match="exited with status 1"):
        inst.install()


def test_wrong_download_is_removed(tmp_path):
    session = _Session(_Response(b"<html>not found</html>"))
    inst = VendorInstaller(_spec(tmp_path), runner=_Runner(), session=session)

    with pytest.raises(InstallerError, match="not the expected file type"):
        inst.ensure_tarball()
    assert not inst.tarball_path.exists()


def test_http_error_is_removed(tmp_path):
    inst = VendorInstaller(_spec(tmp_path), session=_Session(_Response(status=404)))
    with pytest.raises(InstallerError, match="was not downloaded"):
        inst.ensure_tarball()
    assert not inst.tarball_path.exists()


class _SlowResponse(_Response):
    """Streams several chunks; Ctrl-C lands after the first one."""

    def __init__(self, cancel):
        super().__init__(b"\x1f\x8b" + b"\0" * 8)
        self.cancel = cancel
        self.served = 0

    def iter_content(self, chunk_size=1):
        for _ in range(5):
            self.served += 1
            yield self.body
            self.cancel.set()


def test_cancelled_download_is_removed(tmp_path):
    cancel = threading.Event()
    response = _SlowResponse(cancel)
    inst = VendorInstaller(_spec(tmp_path), session=_Session(response), cancel=cancel)

    with pytest.raises(OperationCancelled, match="download of .* cancelled"):
        inst.ensure_tarball()
    assert response.served == 2
    assert not inst.tarball_path.exists()


# ----------------- agent installer -----------------

def test_agent_installer_pipes_script():
    runner = _Runner()
    session = _Session(_Response(b"#!/bin/bash\necho install\n"))
    AgentInstaller(
        "https://ptmom.example.net:8140/packages/current/install.bash",
        runner=runner,
        session=session,
    ).install(["main:dns_alt_names=pt-master.example.net"])

    (cmd, kw), = runner.calls
    assert cmd == ["bash", "-s", "main:dns_alt_names=pt-master.example.net"]
    assert kw["input"] == "#!/bin/bash\necho install\n"
    assert session.calls[0][1]["verify"] is False


def test_agent_installer_failure():
    with pytest.raises(InstallerError):
        AgentInstaller(
            "https://pt-master.example.net:8140/packages/current/install.bash",
            runner=_Runner(returncode=1),
            session=_Session(_Response(b"exit 1\n")),
        ).install()


def test_agent_installer_unreachable():
    with pytest.raises(InstallerError, match="Cannot fetch"):
        AgentInstaller("https://x:8140/i", session=_Session(_Response(status=503))).fetch_script()
