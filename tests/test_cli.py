from __future__ import annotations

import json
import os

from credfuzz import cli
from credfuzz.params import decode_params
from credfuzz.seed import canonical_seed, synthesize_params


def test_describe_params_lists_fields_in_wire_order():
    summary = cli.describe_params(synthesize_params())
    assert list(summary)[:3] == ["type", "cdh", "rp_id"]
    assert summary["rp_id"] == "localhost"
    assert summary["x509"]["length"] == 742
    assert summary["ext"] == 1
    assert summary["encodedSize"] == len(canonical_seed())


def test_seed_command_writes_decodable_entry(tmp_path):
    corpus = tmp_path / "corpus"
    assert cli.main(["seed", str(corpus)]) == 0

    (entry,) = os.listdir(corpus)
    with open(corpus / entry, "rb") as f:
        assert decode_params(f.read()).ok


def test_describe_command(tmp_path, capsys):
    path = tmp_path / "seed"
    path.write_bytes(canonical_seed())

    assert cli.main(["describe", str(path)]) == 0
    document = json.loads(capsys.readouterr().out)
    assert document["file"] == str(path)
    assert document["rp_name"] == "sweet home localhost"
    assert document["fmt"] is True


def test_describe_command_reports_malformed_entries(tmp_path, capsys):
    path = tmp_path / "junk"
    path.write_bytes(b"\x00junk")

    assert cli.main(["describe", str(path)]) == 1
    assert capsys.readouterr().out == ""


def test_replay_command(tmp_path):
    good = tmp_path / "good"
    good.write_bytes(canonical_seed())
    bad = tmp_path / "bad"
    bad.write_bytes(b"")

    assert cli.main(["replay", str(good), str(bad)]) == 0


def test_missing_file_is_reported(tmp_path):
    assert cli.main(["describe", str(tmp_path / "absent")]) == 1
