"""Address and reference resolution shared by filesystem-like connectors."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from sourcebridge.app.ports import SourceDescriptor
from sourcebridge.errors import InvalidArgumentError


@dataclass(frozen=True, slots=True)
class RemoteEndpoint:
    """Host, port and root directory of an FTP or SFTP source."""

    host: str
    port: int
    root: str


def resolve_endpoint(
    descriptor: SourceDescriptor,
    *,
    scheme: str,
    server_option: str,
    port_option: str,
    default_port: int,
) -> RemoteEndpoint:
    """Work out where a remote filesystem source lives.

    With ``server_option`` set, ``address`` is the remote root directory.
    Otherwise ``address`` may be a ``scheme://host[:port]/path`` URL, or a
    bare host whose root is ``/``. An explicit ``port_option`` always wins.
    """
    options = descriptor.option_view()
    server = options.get_str(server_option)
    address = descriptor.address.strip()

    if server:
        host, url_port, root = server, None, address or "/"
    elif "://" in address:
        parts = urlsplit(address)
        if parts.scheme.lower() != scheme or not parts.hostname:
            raise InvalidArgumentError(
                f"Address must be a {scheme}:// URL or a host name",
                source=descriptor.address,
            )
        try:
            url_port = parts.port
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid port in address: {exc}", source=descriptor.address) from exc
        host, root = parts.hostname, unquote(parts.path) or "/"
    else:
        host, url_port, root = address, None, "/"

    if not host:
        raise InvalidArgumentError(
            f"No server configured; set {server_option} or use a {scheme}:// address",
            source=descriptor.address,
        )

    port = options.get_int(port_option, url_port or default_port)
    return RemoteEndpoint(host=host, port=port or default_port, root=root)


def resolve_remote_path(root: str, reference: str) -> str:
    """Join a relative reference onto ``root``; absolute references pass through."""
    if reference.startswith("/"):
        return reference
    return posixpath.join(root, reference)
