import socket
from unittest.mock import patch

import pytest

from evtcp.core.exceptions import AddressResolutionError, ConfigurationError
from evtcp.net.address import Address, format_sockaddr, resolve_address


def test_resolve_numeric_ipv4():
    address = resolve_address("127.0.0.1", 8080)

    assert address.family == socket.AF_INET
    assert address.sockaddr == ("127.0.0.1", 8080)
    assert str(address) == "127.0.0.1:8080"


@pytest.mark.parametrize("port", [0, -1, 65536])
def test_port_out_of_range(port):
    with pytest.raises(AddressResolutionError) as exc_info:
        resolve_address("127.0.0.1", port)
    assert exc_info.value.port == port


def test_empty_host():
    with pytest.raises(AddressResolutionError):
        resolve_address("", 80)


def test_resolver_failure():
    with patch("evtcp.net.address.socket.getaddrinfo",
               side_effect=socket.gaierror(-2, "Name or service not known")):
        with pytest.raises(AddressResolutionError, match="Cannot resolve") as exc_info:
            resolve_address("no-such-host.invalid", 80)
    assert exc_info.value.host == "no-such-host.invalid"
    # Resolution errors are configuration errors
    assert isinstance(exc_info.value, ConfigurationError)


def test_format_ipv6():
    assert format_sockaddr(socket.AF_INET6, ("::1", 80, 0, 0)) == "[::1]:80"
    assert format_sockaddr(socket.AF_INET, ()) == ""


def test_address_defaults_sockaddr():
    address = Address("10.1.2.3", 99)
    assert address.sockaddr == ("10.1.2.3", 99)
    assert address.ip == "10.1.2.3"
