"""
safesight: offline verification of Safe transactions.

Examples:
  $ safesight verify tx.json                 # JSON result on stdout
  $ safesight verify tx.json --pretty        # human-readable summary
  $ safesight decode 0xcA11bde05977b3631167028862bE2a173976CA11 0x82ad56cb... --chain 1
"""
import json
import logging
from typing import Iterator

import click

from .decoder import decode_calldata
from .errors import VerificationError
from .formatting import annotate_address, format_ether
from .models import CallNode, Operation, VerificationResult
from .registry import DEFAULT_REGISTRIES, get_known_contract
from .verify import load_transaction, strip_chain_prefix, verify_transaction


def _call_lines(call: CallNode, indent: int = 2) -> Iterator[str]:
    pad = " " * indent
    name = f" ({call.target_name})" if call.target_name else ""
    op = " [DELEGATECALL]" if call.delegate_call else ""
    yield f"{pad}{call.function_name} -> {call.target}{name}{op}"
    if call.raw_data is not None:
        yield f"{pad}  data: {call.raw_data}"
    elif not call.sub_calls:
        for key, value in call.parsed_arguments.items():
            yield f"{pad}  {key}: {value}"
    for sub in call.sub_calls:
        yield from _call_lines(sub, indent + 4)


def _summary_lines(result: VerificationResult, title: str) -> Iterator[str]:
    tx = result.transaction
    chain = DEFAULT_REGISTRIES.chain_names.get(tx.chain)
    yield title
    yield f"  Safe:      {annotate_address(tx.safe, get_known_contract(tx.safe, tx.chain))} (v{tx.safe_version})"
    yield f"  Chain:     {tx.chain}" + (f" ({chain})" if chain else "")
    yield f"  Target:    {annotate_address(tx.to, get_known_contract(tx.to, tx.chain))}"
    yield f"  Value:     {format_ether(tx.value)}"
    yield f"  Nonce:     {tx.nonce}"
    yield f"  Operation: {'DELEGATECALL' if tx.operation == Operation.DELEGATE_CALL else 'CALL'}"
    yield "  Call:"
    yield from _call_lines(result.call, 4)
    yield f"  Domain hash:   {result.domain_hash}"
    yield f"  Message hash:  {result.message_hash}"
    yield f"  Approval hash: {result.approval_hash}"


def render_pretty(result: VerificationResult) -> str:
    lines = []
    if result.nested_result is not None:
        lines.append("WARNING: this transaction approves a transaction on a child Safe.")
        lines.extend(_summary_lines(result.nested_result, "CHILD TRANSACTION (approved, executes later)"))
        lines.append("")
    lines.extend(_summary_lines(result, "TRANSACTION TO SIGN"))
    return "\n".join(lines)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose):
    """safesight: verify Safe transaction hashes and calldata (offline)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("verify")
@click.argument("input_file", type=str)
@click.option("--json", "json_out", type=click.Path(writable=True), default=None, help="Write JSON result.")
@click.option("--pretty", is_flag=True, help="Print a human-readable summary.")
def verify_cmd(input_file, json_out, pretty):
    """Verify a transaction record (JSON file, or - for stdin)."""
    try:
        result = verify_transaction(load_transaction(input_file))
    except (OSError, VerificationError) as e:
        raise click.ClickException(str(e))

    report = result.to_dict()
    if pretty:
        click.echo(render_pretty(result))

    if json_out:
        with open(json_out, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        click.echo(f"Wrote JSON result: {json_out}")

    if not (pretty or json_out):
        click.echo(json.dumps(report, indent=2, ensure_ascii=False))


@cli.command("decode")
@click.argument("target", type=str)
@click.argument("calldata", type=str)
@click.option("--chain", "chain_id", type=int, default=1, show_default=True, help="Chain id for registry lookups.")
def decode_cmd(target, calldata, chain_id):
    """Decode CALLDATA sent to TARGET into a call tree."""
    try:
        call = decode_calldata(strip_chain_prefix(target), calldata, chain_id)
    except VerificationError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(call.to_dict(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
