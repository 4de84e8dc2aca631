"""Tests for lib/directives.py - idempotent line edits."""

import os

import pytest

from privacy_suite.errors import EditorIOError
from privacy_suite.lib.directives import (
    EditOutcome,
    comment_matching,
    ensure_line,
    ensure_uncomment,
    remove_matching,
    set_directive,
    split_lines,
)


@pytest.fixture
def conf(tmp_path):
    p = tmp_path / "torrc"
    p.write_text("Log notice syslog\n#SocksPort 9150\n")
    return p


class TestSplitLines:
    def test_keeps_terminators(self):
        assert split_lines("a\nb\n") == ["a\n", "b\n"]

    def test_unterminated_last_line(self):
        assert split_lines("a\nb") == ["a\n", "b"]

    def test_empty(self):
        assert split_lines("") == []

    def test_crlf_stays_on_line(self):
        assert split_lines("a\r\nb\r\n") == ["a\r\n", "b\r\n"]


class TestEnsureLine:
    def test_appends_when_absent(self, conf):
        assert ensure_line(conf, "SocksPort 9050") is EditOutcome.ADDED
        assert conf.read_text().splitlines()[-1] == "SocksPort 9050"

    def test_noop_when_present(self, conf):
        conf.write_text("SocksPort 9050\n")
        assert ensure_line(conf, "SocksPort 9050") is EditOutcome.ALREADY_PRESENT
        assert conf.read_text() == "SocksPort 9050\n"

    def test_idempotent(self, conf):
        ensure_line(conf, "ControlPort 9051")
        once = conf.read_bytes()
        ensure_line(conf, "ControlPort 9051")
        assert conf.read_bytes() == once

    def test_commented_line_does_not_count(self, conf):
        """'#SocksPort 9150' is not the active line 'SocksPort 9150'."""
        assert ensure_line(conf, "SocksPort 9150") is EditOutcome.ADDED

    def test_exact_match_only(self, conf):
        conf.write_text("SocksPort 9050 # local\n")
        assert ensure_line(conf, "SocksPort 9050") is EditOutcome.ADDED

    def test_fixes_missing_trailing_newline(self, conf):
        conf.write_text("Log notice syslog")
        ensure_line(conf, "SocksPort 9050")
        assert conf.read_text() == "Log notice syslog\nSocksPort 9050\n"

    def test_empty_file(self, conf):
        conf.write_text("")
        ensure_line(conf, "SocksPort 9050")
        assert conf.read_text() == "SocksPort 9050\n"

    def test_crlf_line_matches(self, conf):
        conf.write_bytes(b"SocksPort 9050\r\n")
        assert ensure_line(conf, "SocksPort 9050") is EditOutcome.ALREADY_PRESENT

    def test_unchanged_file_not_rewritten(self, conf):
        conf.write_text("SocksPort 9050\n")
        before = os.stat(conf).st_ino
        ensure_line(conf, "SocksPort 9050")
        assert os.stat(conf).st_ino == before

    def test_preserves_permissions(self, conf):
        os.chmod(conf, 0o640)
        ensure_line(conf, "SocksPort 9050")
        assert os.stat(conf).st_mode & 0o777 == 0o640

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(EditorIOError):
            ensure_line(tmp_path / "nope", "SocksPort 9050")

    def test_no_temp_files_left(self, conf):
        ensure_line(conf, "SocksPort 9050")
        assert sorted(p.name for p in conf.parent.iterdir()) == ["torrc"]

    def test_non_utf8_bytes_round_trip(self, conf):
        conf.write_bytes(b"# caf\xe9\nLog notice syslog\n")
        ensure_line(conf, "SocksPort 9050")
        assert conf.read_bytes() == b"# caf\xe9\nLog notice syslog\nSocksPort 9050\n"


class TestEnsureUncomment:
    def test_uncomments_in_place(self, conf):
        assert ensure_uncomment(conf, "SocksPort") is EditOutcome.UNCOMMENTED
        assert conf.read_text() == "Log notice syslog\nSocksPort 9150\n"

    def test_whitespace_around_hash(self, conf):
        conf.write_text("a\n   #   ControlPort 9051\nb\n")
        ensure_uncomment(conf, "ControlPort")
        assert conf.read_text() == "a\nControlPort 9051\nb\n"

    def test_all_occurrences(self, conf):
        conf.write_text("#SocksPort 9050\nx\n# SocksPort 9100\n")
        ensure_uncomment(conf, "SocksPort")
        assert conf.read_text() == "SocksPort 9050\nx\nSocksPort 9100\n"

    def test_no_match(self, conf):
        assert ensure_uncomment(conf, "TransPort") is EditOutcome.NO_MATCH

    def test_idempotent(self, conf):
        ensure_uncomment(conf, "SocksPort")
        once = conf.read_bytes()
        assert ensure_uncomment(conf, "SocksPort") is EditOutcome.NO_MATCH
        assert conf.read_bytes() == once

    def test_keeps_crlf(self, conf):
        conf.write_bytes(b"#SocksPort 9050\r\nx\r\n")
        ensure_uncomment(conf, "SocksPort")
        assert conf.read_bytes() == b"SocksPort 9050\r\nx\r\n"

    def test_anchored_pattern(self, conf):
        conf.write_text("#proxy_dns\n#proxy_dns_old\n")
        ensure_uncomment(conf, r"proxy_dns\s*$")
        assert conf.read_text() == "proxy_dns\n#proxy_dns_old\n"


class TestScenarioUncommentThenEnsure:
    def test_both_lines_in_order(self, tmp_path):
        """'#SocksPort 9150' + uncomment + ensure 'SocksPort 9050' gives two active lines."""
        p = tmp_path / "torrc"
        p.write_text("#SocksPort 9150\n")

        ensure_uncomment(p, "SocksPort")
        ensure_line(p, "SocksPort 9050")

        assert p.read_text().splitlines() == ["SocksPort 9150", "SocksPort 9050"]


class TestRemoveMatching:
    def test_removes_and_counts(self, conf):
        conf.write_text("HashedControlPassword 16:AA\nx\nHashedControlPassword 16:BB\n")
        assert remove_matching(conf, r"^HashedControlPassword") == 2
        assert conf.read_text() == "x\n"

    def test_zero_when_nothing_matches(self, conf):
        before = conf.read_bytes()
        assert remove_matching(conf, r"^Nope") == 0
        assert conf.read_bytes() == before


class TestCommentMatching:
    def test_comments_active_only(self, conf):
        conf.write_text("strict_chain\n#strict_chain\ndynamic_chain\n")
        assert comment_matching(conf, r"^strict_chain$") == 1
        assert conf.read_text() == "#strict_chain\n#strict_chain\ndynamic_chain\n"

    def test_idempotent(self, conf):
        conf.write_text("strict_chain\n")
        comment_matching(conf, r"^strict_chain$")
        assert comment_matching(conf, r"^strict_chain$") == 0


class TestSetDirective:
    def test_replaces_conflicting_value(self, conf):
        conf.write_text("AutomapHostsOnResolve 0\nx\n")
        assert set_directive(conf, "AutomapHostsOnResolve", "1") is EditOutcome.ADDED
        assert conf.read_text() == "x\nAutomapHostsOnResolve 1\n"

    def test_uncommented_matching_value_kept_in_place(self, conf):
        conf.write_text("#UseBridges 1\nx\n")
        assert set_directive(conf, "UseBridges", "1") is EditOutcome.ALREADY_PRESENT
        assert conf.read_text() == "UseBridges 1\nx\n"

    def test_does_not_touch_longer_keys(self, conf):
        conf.write_text("DNSPortX 1\n")
        set_directive(conf, "DNSPort", "5353")
        assert conf.read_text() == "DNSPortX 1\nDNSPort 5353\n"

    def test_idempotent(self, conf):
        set_directive(conf, "VirtualAddrNetwork", "10.192.0.0/10")
        once = conf.read_bytes()
        set_directive(conf, "VirtualAddrNetwork", "10.192.0.0/10")
        assert conf.read_bytes() == once
