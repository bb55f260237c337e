# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/utils/ssh_runner.py

from __future__ import annotations

import logging
import socket
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Protocol

import paramiko

from hostforge.deploy.models import CommandResult, Host
from hostforge.errors import ChannelError
from .ssh import load_private_key, open_ssh

log = logging.getLogger("hostforge")

_POLL_INTERVAL = 0.05
_RECV_BYTES = 32768


class RemoteChannel(Protocol):
    """Typed remote-execution capability handed to gates and steps."""

    def execute(
        self,
        host: Host,
        command: str,
        *,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
    ) -> CommandResult: ...

    def transfer(
        self,
        host: Host,
        local_path: str | Path,
        remote_path: str,
        *,
        timeout: Optional[float] = None,
    ) -> None: ...

    def close(self) -> None: ...


class SSHChannel:
    """
    Paramiko implementation of :class:`RemoteChannel`.

    One SSHClient per host address, opened lazily on first use. A host's
    client is only ever used by the worker thread running that host's
    pipeline; the lock guards the client map, not the sessions.
    """

    def __init__(
        self,
        *,
        username: str,
        key_path: str | Path,
        port: int = 22,
        connect_timeout: float = 10.0,
        command_timeout: Optional[float] = 600.0,
    ):
        self.username = username
        self.key_path = Path(key_path)
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._pkey: Optional[paramiko.PKey] = None
        self._clients: Dict[str, paramiko.SSHClient] = {}
        self._lock = threading.Lock()

    # ------------------ connection ------------------

    def _key(self) -> paramiko.PKey:
        with self._lock:
            if self._pkey is None:
                self._pkey = load_private_key(self.key_path)
            return self._pkey

    def _client(self, host: Host, connect_timeout: Optional[float]) -> paramiko.SSHClient:
        with self._lock:
            client = self._clients.get(host.address)
        if client is not None:
            transport = client.get_transport()
            if transport is not None and transport.is_active():
                return client
            self._drop(host)

        try:
            client = open_ssh(
                host.address,
                username=self.username,
                pkey=self._key(),
                port=self.port,
                connect_timeout=connect_timeout or self.connect_timeout,
            )
        except (paramiko.SSHException, OSError) as e:
            raise ChannelError(f"cannot connect to {self.username}@{host.address}: {e}") from e

        with self._lock:
            self._clients[host.address] = client
        return client

    def _drop(self, host: Host) -> None:
        with self._lock:
            client = self._clients.pop(host.address, None)
        if client is not None:
            client.close()

    # ------------------ RemoteChannel ------------------

    def execute(
        self,
        host: Host,
        command: str,
        *,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
    ) -> CommandResult:
        client = self._client(host, connect_timeout)
        timeout = timeout if timeout is not None else self.command_timeout
        log.debug("[%s] $ %s", host.address, command)
        try:
            _, stdout, stderr = client.exec_command(command, timeout=timeout)
            out, err = self._collect(host, stdout, stderr, timeout)
            rc = stdout.channel.recv_exit_status()
        except socket.timeout as e:
            self._drop(host)
            raise ChannelError(f"command timed out after {timeout}s on {host.address}") from e
        except (paramiko.SSHException, OSError) as e:
            self._drop(host)
            raise ChannelError(f"command failed on {host.address}: {e}") from e

        log.debug("[%s] exit=%d", host.address, rc)
        return CommandResult(exit_code=rc, stdout=out, stderr=err)

    def _collect(self, host: Host, stdout, stderr, timeout: Optional[float]):
        """
        Drain both streams until the command exits. paramiko's own timeout
        only bounds a single read, so a command that keeps printing would
        never trip it; the deadline here bounds the whole command.
        """
        chan = stdout.channel
        deadline = time.monotonic() + timeout if timeout else None
        out, err = [], []
        while not chan.exit_status_ready():
            got = False
            if chan.recv_ready():
                out.append(chan.recv(_RECV_BYTES))
                got = True
            if chan.recv_stderr_ready():
                err.append(chan.recv_stderr(_RECV_BYTES))
                got = True
            if deadline is not None and time.monotonic() >= deadline:
                chan.close()
                self._drop(host)
                raise ChannelError(f"command timed out after {timeout}s on {host.address}")
            if not got:
                time.sleep(_POLL_INTERVAL)
        out.append(stdout.read())
        err.append(stderr.read())
        return (
            b"".join(out).decode("utf-8", errors="replace"),
            b"".join(err).decode("utf-8", errors="replace"),
        )

    def transfer(
        self,
        host: Host,
        local_path: str | Path,
        remote_path: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        client = self._client(host, None)
        timeout = timeout if timeout is not None else self.command_timeout
        log.debug("[%s] upload %s -> %s", host.address, local_path, remote_path)
        try:
            sftp = client.open_sftp()
            try:
                sftp.get_channel().settimeout(timeout)
                sftp.put(str(local_path), str(remote_path))
            finally:
                sftp.close()
        except socket.timeout as e:
            self._drop(host)
            raise ChannelError(f"transfer to {host.address} timed out after {timeout}s") from e
        except (paramiko.SSHException, OSError) as e:
            raise ChannelError(
                f"transfer {local_path} -> {host.address}:{remote_path} failed: {e}"
            ) from e

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
