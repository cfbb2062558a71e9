from __future__ import annotations

import pytest

from healthtrack.core.errors import ProfileConfigError
from healthtrack.model.loader import ProfileLoader, default_profile_path
from healthtrack.model.profile import DEFAULT_PROFILE, Metric


def _write(tmp_path, text: str):
    p = tmp_path / "profile.yml"
    p.write_text(text, encoding="utf-8")
    return p


VALID = """
target_name: PulseX
service:
  uuid: 0000ABCD-0000-1000-8000-00805F9B34FB
characteristics:
  heart_rate: 00000001-0000-1000-8000-00805f9b34fb
  spo2: 00000002-0000-1000-8000-00805f9b34fb
  status: 00000003-0000-1000-8000-00805f9b34fb
"""


def test_packaged_profile_matches_defaults():
    profile = ProfileLoader(default_profile_path()).load()
    assert profile == DEFAULT_PROFILE


def test_load_valid_profile_normalizes_uuids(tmp_path):
    profile = ProfileLoader(_write(tmp_path, VALID)).load()
    assert profile.target_name == "PulseX"
    assert profile.service_uuid == "0000abcd-0000-1000-8000-00805f9b34fb"
    # prefix defaults to the first UUID group
    assert profile.service_uuid_prefix == "0000abcd"
    assert profile.characteristic_uuid(Metric.SPO2) == "00000002-0000-1000-8000-00805f9b34fb"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ProfileConfigError):
        ProfileLoader(tmp_path / "nope.yml").load()


def test_invalid_yaml_raises(tmp_path):
    with pytest.raises(ProfileConfigError):
        ProfileLoader(_write(tmp_path, "target_name: [unclosed")).load()


def test_missing_characteristic_raises(tmp_path):
    text = VALID.replace("  status: 00000003-0000-1000-8000-00805f9b34fb\n", "")
    with pytest.raises(ProfileConfigError):
        ProfileLoader(_write(tmp_path, text)).load()


def test_bad_uuid_raises(tmp_path):
    text = VALID.replace("00000001-0000-1000-8000-00805f9b34fb", "1234")
    with pytest.raises(ProfileConfigError):
        ProfileLoader(_write(tmp_path, text)).load()


def test_unknown_characteristic_key_raises(tmp_path):
    text = VALID + "  battery: 00000004-0000-1000-8000-00805f9b34fb\n"
    with pytest.raises(ProfileConfigError):
        ProfileLoader(_write(tmp_path, text)).load()


def test_prefix_must_match_service_uuid(tmp_path):
    text = VALID.replace("characteristics:", "  uuid_prefix: \"ffff\"\ncharacteristics:")
    with pytest.raises(ProfileConfigError):
        ProfileLoader(_write(tmp_path, text)).load()
