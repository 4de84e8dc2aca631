"""Tests for lib/validator.py - structural config acceptance."""

import pytest

from privacy_suite.lib.validator import (
    Rejection,
    RejectionKind,
    ValidationOk,
    validate,
    validate_wireguard,
)

from .conftest import VALID_WG

MINIMAL_WG = "[Interface]\nPrivateKey = abc\n[Peer]\nPublicKey = def\n"


@pytest.fixture
def candidate(tmp_path):
    def write(text):
        p = tmp_path / "wg.conf"
        p.write_text(text)
        return p

    return write


class TestAccept:
    def test_minimal_file(self, candidate):
        outcome = validate_wireguard(candidate(MINIMAL_WG))
        assert isinstance(outcome, ValidationOk)
        assert outcome

    def test_realistic_file_with_extra_lines(self, candidate):
        assert isinstance(validate_wireguard(candidate(VALID_WG)), ValidationOk)

    def test_no_spaces_around_equals(self, candidate):
        text = "[Interface]\nPrivateKey=abc\n[Peer]\nPublicKey=def\n"
        assert isinstance(validate_wireguard(candidate(text)), ValidationOk)

    def test_repeated_peer_sections(self, candidate):
        text = "[Interface]\nPrivateKey = a\n[Peer]\nEndpoint = x:1\n[Peer]\nPublicKey = b\n"
        assert isinstance(validate_wireguard(candidate(text)), ValidationOk)

    def test_section_header_with_trailing_comment(self, candidate):
        text = "[Interface] # home\nPrivateKey = a\n[Peer] ; vpn\nPublicKey = b\n"
        assert isinstance(validate_wireguard(candidate(text)), ValidationOk)

    def test_flat_key_list(self, candidate):
        p = candidate("SocksPort 9050\nControlPort 9051\n")
        assert isinstance(validate(p, [], ["SocksPort", "ControlPort"]), ValidationOk)


class TestReject:
    def test_missing_file(self, tmp_path):
        outcome = validate_wireguard(tmp_path / "absent.conf")
        assert isinstance(outcome, Rejection)
        assert outcome.kind is RejectionKind.EMPTY_OR_MISSING
        assert not outcome

    @pytest.mark.parametrize("text", ["", "   \n\n"])
    def test_empty(self, candidate, text):
        assert validate_wireguard(candidate(text)).kind is RejectionKind.EMPTY_OR_MISSING

    def test_missing_section(self, candidate):
        outcome = validate_wireguard(candidate("[Interface]\nPrivateKey = abc\n"))
        assert outcome.kind is RejectionKind.MISSING_SECTION
        assert outcome.name == "Peer"
        assert "[Peer]" in outcome.reason

    def test_missing_key(self, candidate):
        outcome = validate_wireguard(candidate("[Interface]\nPrivateKey = abc\n[Peer]\nEndpoint = x:1\n"))
        assert outcome.kind is RejectionKind.MISSING_KEY
        assert outcome.name == "PublicKey"
        assert outcome.section == "Peer"

    def test_key_in_wrong_section(self, candidate):
        text = "[Interface]\nPrivateKey = a\nPublicKey = b\n[Peer]\nEndpoint = x:1\n"
        outcome = validate_wireguard(candidate(text))
        assert outcome.kind is RejectionKind.MISSING_KEY
        assert outcome.name == "PublicKey"

    def test_commented_key_does_not_count(self, candidate):
        text = "[Interface]\n# PrivateKey = a\n[Peer]\nPublicKey = b\n"
        assert validate_wireguard(candidate(text)).name == "PrivateKey"

    def test_commented_section_does_not_count(self, candidate):
        text = "[Interface]\nPrivateKey = a\n#[Peer]\nPublicKey = b\n"
        assert validate_wireguard(candidate(text)).kind is RejectionKind.MISSING_SECTION

    def test_key_prefix_is_not_key(self, candidate):
        text = "[Interface]\nPrivateKeyFile = a\n[Peer]\nPublicKey = b\n"
        assert validate_wireguard(candidate(text)).name == "PrivateKey"

    def test_flat_key_missing(self, candidate):
        p = candidate("SocksPort 9050\n")
        outcome = validate(p, [], ["ControlPort"])
        assert outcome.kind is RejectionKind.MISSING_KEY
        assert outcome.section is None


class TestReadOnly:
    def test_candidate_untouched(self, candidate):
        p = candidate("[Interface]\n")
        before = (p.read_bytes(), p.stat().st_mtime_ns)
        validate_wireguard(p)
        assert (p.read_bytes(), p.stat().st_mtime_ns) == before
