import json

import pytest
from click.testing import CliRunner

from safesight.cli import cli, render_pretty
from safesight.verify import verify_record

from .conftest import MAINNET_AGGREGATE3_DATA, MAINNET_SAFE, MULTICALL3


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tx_file(tmp_path, mainnet_record):
    path = tmp_path / "tx.json"
    path.write_text(json.dumps(mainnet_record), encoding="utf-8")
    return str(path)


def test_verify_prints_json(runner, tx_file):
    result = runner.invoke(cli, ["verify", tx_file])
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["messageHash"] == "0xa6d60aba6b1426cec097593348a9d36ed42ddd1ac52f1b05a5f46a9c0401a11a"
    assert report["call"]["functionName"] == "aggregate3"
    assert report["transaction"]["safe"] == MAINNET_SAFE


def test_verify_reads_stdin(runner, mainnet_record):
    result = runner.invoke(cli, ["verify", "-"], input=json.dumps(mainnet_record))
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["domainHash"].startswith("0xa4a9c312")


def test_verify_pretty(runner, tx_file):
    result = runner.invoke(cli, ["verify", tx_file, "--pretty"])
    assert result.exit_code == 0, result.output
    assert "TRANSACTION TO SIGN" in result.output
    assert "Chain:     1 (Ethereum)" in result.output
    assert f"aggregate3 -> {MULTICALL3} (MULTICALL3) [DELEGATECALL]" in result.output
    assert f"Target:    {MULTICALL3} (MULTICALL3 🔍)" in result.output
    assert "approveHash -> " in result.output
    assert "Message hash:  0xa6d60aba" in result.output
    assert "WARNING" not in result.output


def test_verify_writes_json_file(runner, tx_file, tmp_path, mainnet_record):
    out = tmp_path / "result.json"
    result = runner.invoke(cli, ["verify", tx_file, "--json", str(out)])
    assert result.exit_code == 0, result.output
    assert "Wrote JSON result" in result.output
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["approvalHash"] == verify_record(mainnet_record).approval_hash


def test_verify_missing_file(runner, tmp_path):
    result = runner.invoke(cli, ["verify", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_verify_malformed_record(runner, tmp_path, mainnet_record):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(dict(mainnet_record, operation=7)), encoding="utf-8")
    result = runner.invoke(cli, ["verify", str(path)])
    assert result.exit_code == 1
    assert "invalid operation code 7" in result.output


def test_render_pretty_nested(mainnet_record):
    inner_approval = verify_record(mainnet_record).approval_hash
    nested = {
        "safe": "0x3333333333333333333333333333333333333333",
        "safe_version": "1.4.1",
        "nonce": 2,
        "data": "0xd4d9bdcd" + inner_approval[2:],
        "to": MAINNET_SAFE,
    }
    text = render_pretty(verify_record(dict(mainnet_record, nested=nested)))
    assert text.startswith("WARNING: this transaction approves a transaction on a child Safe.")
    assert text.index("CHILD TRANSACTION") < text.index("TRANSACTION TO SIGN")
    assert f"hashToApprove: {inner_approval}" in text


def test_decode_command(runner):
    result = runner.invoke(cli, ["decode", "eth:" + MULTICALL3, MAINNET_AGGREGATE3_DATA, "--chain", "1"])
    assert result.exit_code == 0, result.output
    tree = json.loads(result.output)
    assert tree["targetName"] == "MULTICALL3"
    assert tree["subCalls"][0]["functionName"] == "approveHash"


def test_decode_command_rejects_disallowed_batch_call(runner):
    result = runner.invoke(cli, ["decode", MULTICALL3, "0xdeadbeef"])
    assert result.exit_code == 1
    assert "unrecognized function on batching contract" in result.output


def test_verify_out_of_range_value(runner, tmp_path, mainnet_record):
    path = tmp_path / "big.json"
    path.write_text(json.dumps(dict(mainnet_record, value=str(2 ** 256))), encoding="utf-8")
    result = runner.invoke(cli, ["verify", str(path)])
    assert result.exit_code == 1
    assert "value does not fit in uint256" in result.output


def test_verify_binary_file(runner, tmp_path):
    path = tmp_path / "tx.bin"
    path.write_bytes(b"\xff\xfe\x00garbage")
    result = runner.invoke(cli, ["verify", str(path)])
    assert result.exit_code == 1
    assert "not valid JSON" in result.output
