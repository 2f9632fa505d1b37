from __future__ import annotations

import logging
import queue
import socket
import threading
from typing import Callable, Optional

from zeroconf import NonUniqueNameException, ServiceBrowser, ServiceInfo, ServiceStateChange, Zeroconf

from ..errors import (
    ERROR_CANCELLED,
    ERROR_INTERNAL,
    ERROR_NAME_CONFLICT,
    ERROR_TRANSPORT_UNAVAILABLE,
    DiscoveryError,
    RegistrationError,
    ResolutionFailure,
)
from .net import local_ip
from .protocol import SERVICE_NAME, DiscoveredEndpoint, service_type_fqdn

log = logging.getLogger(__name__)

DEFAULT_RESOLVE_TIMEOUT_MS = 2000
_POLL = 0.25


def _instance_name(full_name: str, service_type: str) -> str:
    suffix = "." + service_type
    if full_name.endswith(suffix):
        return full_name[: -len(suffix)]
    return full_name


class ServicePublisher:
    """Advertises the display's listening port on the LAN.

    At most one register() may be outstanding per instance. Calling
    unregister() from another thread while register() is still running
    cancels it: the advertisement is withdrawn as soon as it lands and
    register() raises RegistrationError with ERROR_CANCELLED.
    """

    def __init__(
        self,
        zeroconf: Optional[Zeroconf] = None,
        service_name: str = SERVICE_NAME,
        host: Optional[str] = None,
    ) -> None:
        self.service_name = service_name
        self.host = host
        self._zc = zeroconf
        self._owns_zc = zeroconf is None
        self._info: Optional[ServiceInfo] = None
        self._pending = False
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def registered(self) -> bool:
        return self._info is not None

    def _zeroconf(self) -> Zeroconf:
        if self._zc is None:
            try:
                self._zc = Zeroconf()
            except OSError as e:
                raise RegistrationError(f"discovery transport unavailable: {e}", ERROR_TRANSPORT_UNAVAILABLE) from e
        return self._zc

    def register(self, port: int) -> str:
        """Advertise ``port``; returns the name actually used, which may differ."""
        service_type = service_type_fqdn()
        host = self.host or local_ip()
        info = ServiceInfo(
            type_=service_type,
            name=f"{self.service_name}.{service_type}",
            addresses=[socket.inet_aton(host)],
            port=int(port),
            properties={},
            server=f"{socket.gethostname().split('.')[0]}.local.",
        )
        with self._lock:
            self._pending = True
            self._cancelled = False
        try:
            zc = self._zeroconf()
            zc.register_service(info, allow_name_change=True)
        except NonUniqueNameException as e:
            raise RegistrationError(f"service name {self.service_name!r} is taken", ERROR_NAME_CONFLICT) from e
        except RegistrationError:
            raise
        except Exception as e:
            raise RegistrationError(f"registration rejected: {e}", ERROR_INTERNAL) from e
        finally:
            with self._lock:
                self._pending = False
                cancelled = self._cancelled

        if cancelled:
            self._withdraw(zc, info)
            raise RegistrationError("registration cancelled", ERROR_CANCELLED)
        with self._lock:
            self._info = info
        resolved = _instance_name(info.name, service_type)
        log.info("Advertising %r on %s:%d", resolved, host, port)
        return resolved

    def unregister(self) -> None:
        with self._lock:
            if self._pending:
                self._cancelled = True
            info, self._info = self._info, None
        if info is not None and self._zc is not None:
            self._withdraw(self._zc, info)

    def _withdraw(self, zc: Zeroconf, info: ServiceInfo) -> None:
        try:
            zc.unregister_service(info)
            log.info("Withdrew advertisement %r", info.name)
        except Exception as e:
            log.debug("Unregister of %r failed: %s", info.name, e)

    def close(self) -> None:
        self.unregister()
        if self._owns_zc and self._zc is not None:
            zc, self._zc = self._zc, None
            zc.close()


class _Scan:
    def __init__(self) -> None:
        self.stopped = threading.Event()
        self.browser = None
        self._cancelled = False
        self._lock = threading.Lock()

    def cancel(self) -> None:
        self.stopped.set()
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            browser, self.browser = self.browser, None
        if browser is None:
            return
        try:
            browser.cancel()
        except Exception as e:
            log.debug("Browser cancel failed: %s", e)
        log.info("Scan stopped")


class ScanResults:
    """Iterator over one scan's endpoints; close() cancels the scan."""

    def __init__(self, owner: "DiscoveryBrowser", scan: _Scan, found: "queue.Queue[DiscoveredEndpoint]") -> None:
        self._owner = owner
        self._scan = scan
        self._found = found

    def __iter__(self) -> "ScanResults":
        return self

    def __next__(self) -> DiscoveredEndpoint:
        while not self._scan.stopped.is_set():
            try:
                return self._found.get(timeout=_POLL)
            except queue.Empty:
                continue
        self.close()
        raise StopIteration

    def close(self) -> None:
        self._owner._finish(self._scan)

    def __enter__(self) -> "ScanResults":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class DiscoveryBrowser:
    """Scans the LAN for advertised displays.

    ``discover()`` returns a lazy, never-ending iterator of resolved
    endpoints. It only stops when the consumer closes it or calls ``stop()``;
    either way the underlying scan is cancelled exactly once. Endpoints that
    fail to resolve are dropped, and repeats are possible.
    """

    def __init__(
        self,
        zeroconf: Optional[Zeroconf] = None,
        resolve_timeout_ms: int = DEFAULT_RESOLVE_TIMEOUT_MS,
        browser_factory: Callable[..., object] = ServiceBrowser,
    ) -> None:
        self.resolve_timeout_ms = resolve_timeout_ms
        self._zc = zeroconf
        self._owns_zc = zeroconf is None
        self._browser_factory = browser_factory
        self._scan: Optional[_Scan] = None
        self._lock = threading.Lock()

    @property
    def scanning(self) -> bool:
        scan = self._scan
        return scan is not None and not scan.stopped.is_set()

    def _zeroconf(self) -> Zeroconf:
        if self._zc is None:
            try:
                self._zc = Zeroconf()
            except OSError as e:
                raise DiscoveryError(f"discovery start failed: {e}") from e
        return self._zc

    def discover(self) -> ScanResults:
        # the scan starts here, not on first next(), so a broken transport fails immediately
        self.stop()
        scan = _Scan()
        found: "queue.Queue[DiscoveredEndpoint]" = queue.Queue()
        wanted = service_type_fqdn()
        zc = self._zeroconf()

        def on_change(zeroconf, service_type: str, name: str, state_change) -> None:
            if scan.stopped.is_set() or state_change is ServiceStateChange.Removed:
                return
            if service_type != wanted:
                return
            # resolving blocks, keep it off the zeroconf callback thread
            threading.Thread(
                target=self._resolve,
                args=(zeroconf, service_type, name, found, scan.stopped),
                name="snakecast-resolve",
                daemon=True,
            ).start()

        try:
            scan.browser = self._browser_factory(zc, wanted, handlers=[on_change])
        except Exception as e:
            raise DiscoveryError(f"discovery start failed: {e}") from e
        with self._lock:
            self._scan = scan
        log.info("Scanning for %s", wanted)
        return ScanResults(self, scan, found)

    def _finish(self, scan: _Scan) -> None:
        with self._lock:
            if self._scan is scan:
                self._scan = None
        scan.cancel()

    def _resolve(self, zc, service_type: str, name: str, found, stopped: threading.Event) -> None:
        try:
            info = zc.get_service_info(service_type, name, timeout=self.resolve_timeout_ms)
            if info is None:
                raise ResolutionFailure(name, "no answer")
            addresses = list(info.parsed_addresses())
            ipv4 = [a for a in addresses if ":" not in a]
            if not addresses or not info.port:
                raise ResolutionFailure(name, "no address")
        except ResolutionFailure as e:
            log.debug("%s", e)
            return
        except Exception as e:
            log.debug("%s", ResolutionFailure(name, str(e)))
            return
        if stopped.is_set():
            return
        host = (ipv4 or addresses)[0]
        endpoint = DiscoveredEndpoint(_instance_name(name, service_type), host, int(info.port))
        log.debug("Resolved %s -> %s:%d", endpoint.service_name, endpoint.host, endpoint.port)
        found.put(endpoint)

    def stop(self) -> None:
        with self._lock:
            scan, self._scan = self._scan, None
        if scan is not None:
            scan.cancel()

    def close(self) -> None:
        self.stop()
        if self._owns_zc and self._zc is not None:
            zc, self._zc = self._zc, None
            zc.close()
