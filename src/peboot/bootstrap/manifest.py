# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/bootstrap/manifest.py

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from peboot.errors import ManifestError

_STATEMENT_START = re.compile(r"^(mod|forge|moduledir)\b")
_QUOTED = re.compile(r"""(['"])(.*?)\1""")
_HASH_OPT = re.compile(r""":(\w+)\s*=>\s*(['"])(.*?)\2""")
_NEW_HASH_OPT = re.compile(r"""\b(\w+):\s+(['"])(.*?)\2""")

_REF_KEYS = ("ref", "branch", "tag", "commit")


@dataclass(frozen=True)
class BootstrapModule:
    name: str
    version: Optional[str] = None
    remote: Optional[str] = None
    ref: Optional[str] = None

    @property
    def directory(self) -> str:
        """puppetlabs-stdlib / puppetlabs/stdlib install as "stdlib"."""
        return re.split(r"[-/]", self.name)[-1]


def _statements(text: str) -> List[str]:
    """
    Join Puppetfile lines into logical statements: a statement begins with
    `mod`, `forge` or `moduledir` and runs until the next one.
    """
    out: List[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if _STATEMENT_START.match(line):
            out.append(line)
        elif out:
            out[-1] += " " + line
        else:
            raise ManifestError(f"Unexpected Puppetfile line: {raw!r}")
    return out


def _parse_mod(statement: str) -> BootstrapModule:
    body = statement[len("mod"):].strip()
    quoted = _QUOTED.match(body)
    if not quoted:
        raise ManifestError(f"Module name missing in: {statement!r}")
    name = quoted.group(2)
    rest = body[quoted.end():]

    opts = {m.group(1): m.group(3) for m in _HASH_OPT.finditer(rest)}
    opts.update({m.group(1): m.group(3) for m in _NEW_HASH_OPT.finditer(rest)})

    remote = opts.get("git")
    if remote:
        ref = next((opts[k] for k in _REF_KEYS if k in opts), None)
        return BootstrapModule(name=name, remote=remote, ref=ref)

    # positional version: mod 'name', '1.2.0' (`:latest` leaves it unset)
    version = None
    positional = re.match(r"""\s*,\s*(['"])(.*?)\1""", rest)
    if positional:
        version = positional.group(2)
    return BootstrapModule(name=name, version=version)


def parse_manifest(text: str) -> List[BootstrapModule]:
    return [_parse_mod(s) for s in _statements(text) if re.match(r"mod\b", s)]


def load_manifest(path: Path) -> List[BootstrapModule]:
    if not path.is_file():
        raise ManifestError(f"Cannot read {path}")
    return parse_manifest(path.read_text())
