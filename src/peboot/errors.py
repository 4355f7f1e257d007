# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/errors.py


class PebootError(RuntimeError):
    """Base class for every failure that aborts a role sequence."""


class UsageError(PebootError):
    """Bad arguments, wrong host for the requested mode, unreadable local file."""


class PreconditionError(PebootError):
    """Required inventory entry or external tool is missing."""


class ExternalCallError(PebootError):
    """An external process, host or service failed."""


class InstallerError(ExternalCallError):
    pass


class RemoteConnectionError(ExternalCallError):
    """The remote command never ran: unreachable host, auth rejected, etc."""


class RemoteCommandError(ExternalCallError):
    """The remote command ran and exited non-zero."""


class ClassifierError(ExternalCallError):
    pass


class ConvergenceError(ExternalCallError):
    """An agent run reported failures."""


class NoPendingCertificateError(ExternalCallError):
    """No enrollment request observed on the CA."""


class ConsistencyError(PebootError):
    """A classification group name did not resolve to exactly one group."""


class ManifestError(PebootError):
    pass


class OperationCancelled(PebootError):
    pass
