"""Shared fixtures: a fake host tree under tmp_path plus fake dpkg/systemd."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from privacy_suite.context import RunContext
from privacy_suite.errors import CommandError
from privacy_suite.settings import SuiteConfig, ensure_defaults
from privacy_suite.snapshot_store import SnapshotStore

STOCK_TORRC = """## Configuration file for a typical Tor user
#SocksPort 9050 # Default: Bind to localhost:9050 for local connections.
#ControlPort 9051
#CookieAuthentication 1
Log notice syslog
"""

STOCK_PROXYCHAINS = """# proxychains.conf  VER 4.x
#dynamic_chain
strict_chain
#random_chain
#proxy_dns
#proxy_dns_old
tcp_read_time_out 15000

[ProxyList]
# defaults set to "tor"
socks4 \t127.0.0.1 9050
"""

VALID_WG = """[Interface]
PrivateKey = yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk=
Address = 10.0.0.2/32
DNS = 10.0.0.1

[Peer]
PublicKey = xTIBA5rboUvnH4htodjb6e697QjLERt1NAB4mZqp8Dg=
Endpoint = 198.51.100.7:51820
AllowedIPs = 0.0.0.0/0
"""


class TickClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2026, 10, 16, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


class FakePackages:
    """In-memory stand-in for the dpkg/apt adapter."""

    def __init__(self, selections=None):
        self.selections = list(selections or [("tor", "install"), ("curl", "install")])
        self.calls = []
        self.fail_install = False
        self.fail_get = False

    def get_selections(self):
        self.calls.append("get_selections")
        if self.fail_get:
            raise CommandError("dpkg --get-selections failed", returncode=2)
        return list(self.selections)

    def clear_selections(self):
        self.calls.append("clear_selections")
        self.selections = [(name, "deinstall") for name, _ in self.selections]

    def set_selections(self, pairs):
        self.calls.append("set_selections")
        merged = dict(self.selections)
        merged.update(dict(pairs))
        self.selections = list(merged.items())

    def dselect_upgrade(self):
        self.calls.append("dselect_upgrade")
        self.selections = [(n, s) for n, s in self.selections if s == "install"]

    def install(self, packages, update=True, upgrade=False):
        self.calls.append("upgrade" if upgrade else "install")
        if self.fail_install:
            raise CommandError("apt-get install failed", returncode=100)
        merged = dict(self.selections)
        merged.update({p: "install" for p in packages})
        self.selections = list(merged.items())


class FakeServices:
    def __init__(self):
        self.restarted = []
        self.enabled = []
        self.reloads = 0
        self.failing = set()

    def restart(self, unit):
        if unit in self.failing:
            raise CommandError(f"systemctl restart {unit} failed", returncode=1)
        self.restarted.append(unit)

    def enable(self, unit):
        if unit in self.failing:
            raise CommandError(f"systemctl enable {unit} failed", returncode=1)
        self.enabled.append(unit)

    def daemon_reload(self):
        self.reloads += 1


@pytest.fixture
def host(tmp_path):
    root = tmp_path / "host"
    torrc = root / "etc" / "tor" / "torrc"
    proxychains = root / "etc" / "proxychains4.conf"
    wireguard_dir = root / "etc" / "wireguard"
    torrc.parent.mkdir(parents=True)
    torrc.write_text(STOCK_TORRC)
    proxychains.write_text(STOCK_PROXYCHAINS)
    return SimpleNamespace(
        root=root,
        torrc=torrc,
        proxychains=proxychains,
        wireguard_dir=wireguard_dir,
        wg0=wireguard_dir / "wg0.conf",
    )


@pytest.fixture
def cfg(host, tmp_path):
    raw = ensure_defaults(
        {
            "backup_dir": str(tmp_path / "backups"),
            "watched_files": [str(host.torrc), str(host.proxychains), str(host.wg0)],
            "paths": {
                "torrc": str(host.torrc),
                "proxychains": str(host.proxychains),
                "wireguard_dir": str(host.wireguard_dir),
            },
            "lock_path": str(tmp_path / "privacy-suite.lock"),
        }
    )
    return SuiteConfig(raw=raw)


@pytest.fixture
def packages():
    return FakePackages()


@pytest.fixture
def services():
    return FakeServices()


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def store(cfg, packages, services, clock):
    return SnapshotStore(
        cfg.backup_dir,
        cfg.watched_files,
        packages=packages,
        services=services,
        clock=clock,
    )


@pytest.fixture
def ctx(cfg, store, packages, services):
    return RunContext(cfg=cfg, store=store, packages=packages, services=services)


@pytest.fixture
def wg_source(tmp_path):
    p = tmp_path / "incoming" / "mullvad.conf"
    p.parent.mkdir()
    p.write_text(VALID_WG)
    return p
