"""
rsatrace - Main Entry Point

Usage:
  rsatrace keygen [--bits 512] [--seed N] [--out PREFIX] [--json]
  rsatrace encrypt --key PREFIX.pub.pem "message" [--json]
  rsatrace decrypt --key PREFIX.pem CIPHERTEXT [--json]
  rsatrace demo [--bits 512] [--seed N] [--message TEXT]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core_crypto.randomness import SeededRandomSource, SystemRandomSource
from .core_crypto.rsa_math import DEFAULT_ROUNDS
from .errors import RSATraceError
from .rsa.cipher import decrypt, encrypt
from .rsa.keygen import DEFAULT_KEY_BITS, generate_key_pair
from .rsa.pem import key_pair_from_pem, private_key_to_pem, public_key_from_pem, public_key_to_pem
from .rsa.trace import Step, StepKind, Trace


logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def _short(value: int, width: int = 40) -> str:
    text = str(value)
    if len(text) <= width:
        return text
    return f"{text[:width // 2]}...{text[-width // 2:]} ({len(text)} digits)"


def format_step(step: Step) -> List[str]:
    """Human readable lines for one trace step."""
    data = step.data
    lines = [step.description]

    if step.kind is StepKind.PRIME_GENERATION:
        for name, search in (("p", data.p), ("q", data.q)):
            lines.append(
                f"  {name} = {_short(search.prime)}  "
                f"({search.bits} bits, {search.attempts} candidates, "
                f"{len(search.verdict.rounds)} Miller-Rabin rounds passed)"
            )
    elif step.kind is StepKind.MODULUS_CALCULATION:
        lines.append(f"  n = p × q = {_short(data.n)} ({data.n.bit_length()} bits)")
    elif step.kind is StepKind.TOTIENT_CALCULATION:
        lines.append(f"  φ(n) = {_short(data.p_minus_1)} × {_short(data.q_minus_1)}")
        lines.append(f"       = {_short(data.phi)}")
    elif step.kind is StepKind.PUBLIC_EXPONENT:
        lines.append(f"  e = {data.e}, gcd(e, φ) = {data.gcd} after {len(data.steps)} Euclid iterations")
        for i, euclid in enumerate(data.steps, start=1):
            lines.append(
                f"    [{i}] q={_short(euclid.quotient, 20)} r={_short(euclid.remainder, 20)}"
            )
    elif step.kind is StepKind.PRIVATE_EXPONENT:
        lines.append(f"  d = {_short(data.d)}")
        lines.append(f"  e × d mod φ = {data.ed_mod_phi} ({'OK' if data.verified else 'FAILED'})")
    elif step.kind is StepKind.MESSAGE_CONVERSION:
        lines.append(f"  {data.direction}: {data.message!r} <-> {_short(data.number)}")
        lines.append(f"  bytes: {data.encoded.hex()}")
    else:
        lines.append(
            f"  {_short(data.base)}^{_short(data.exponent, 20)} mod n = {_short(data.result)}"
        )
        lines.append(
            f"  {len(data.binary_exponent)} exponent bits, "
            f"{sum(1 for s in data.steps if s.operation == 'multiply')} multiplications"
        )
    return lines


def print_trace(trace: Trace, as_json: bool = False) -> None:
    if as_json:
        print(trace.to_json(indent=2))
        return
    for number, step in enumerate(trace, start=1):
        lines = format_step(step)
        print(f"[{number}] {lines[0]}")
        for line in lines[1:]:
            print(line)


def _random_source(seed: Optional[int]):
    return SystemRandomSource() if seed is None else SeededRandomSource(seed)


def cmd_keygen(args: argparse.Namespace) -> int:
    result = generate_key_pair(args.bits, rounds=args.rounds, rng=_random_source(args.seed))

    if args.out:
        # Encode both documents before touching the filesystem
        private_pem = private_key_to_pem(result.key_pair)
        public_pem = public_key_to_pem(result.public_key)
        prefix = Path(args.out)
        private_path = prefix.with_name(prefix.name + ".pem")
        public_path = prefix.with_name(prefix.name + ".pub.pem")
        private_path.write_bytes(private_pem)
        public_path.write_bytes(public_pem)
        logger.info("Wrote %s and %s", private_path, public_path)

    print_trace(result.trace, args.json)
    return 0


def cmd_encrypt(args: argparse.Namespace) -> int:
    public_key = public_key_from_pem(Path(args.key).read_bytes())
    result = encrypt(args.message, public_key)
    print_trace(result.trace, args.json)
    if not args.json:
        print(f"\nCiphertext: {result.ciphertext}")
    return 0


def cmd_decrypt(args: argparse.Namespace) -> int:
    key_pair = key_pair_from_pem(Path(args.key).read_bytes())
    result = decrypt(args.ciphertext, key_pair.private_key)
    print_trace(result.trace, args.json)
    if not args.json:
        print(f"\nMessage: {result.message}")
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    keys = generate_key_pair(args.bits, rounds=args.rounds, rng=_random_source(args.seed))
    print("=" * 70)
    print("Key generation")
    print("=" * 70)
    print_trace(keys.trace)

    encrypted = encrypt(args.message, keys.public_key)
    print("\n" + "=" * 70)
    print("Encryption")
    print("=" * 70)
    print_trace(encrypted.trace)

    decrypted = decrypt(encrypted.ciphertext, keys.private_key)
    print("\n" + "=" * 70)
    print("Decryption")
    print("=" * 70)
    print_trace(decrypted.trace)

    ok = decrypted.message == args.message
    print(f"\nRound trip: {'OK' if ok else 'FAILED'}")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rsatrace",
        description="Step-by-step RSA key generation, encryption and decryption",
    )
    parser.add_argument("--log-level", default="WARNING",
                        help="DEBUG, INFO, WARNING or ERROR (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_generation_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--bits", type=int, default=DEFAULT_KEY_BITS,
                       help=f"modulus size in bits (default: {DEFAULT_KEY_BITS})")
        p.add_argument("--seed", type=int, default=None,
                       help="seed for reproducible key generation")
        p.add_argument("--rounds", type=int, default=DEFAULT_ROUNDS,
                       help=f"Miller-Rabin rounds (default: {DEFAULT_ROUNDS})")

    keygen = sub.add_parser("keygen", help="generate a key pair")
    add_generation_options(keygen)
    keygen.add_argument("--out", help="write PREFIX.pem and PREFIX.pub.pem")
    keygen.add_argument("--json", action="store_true", help="print the trace as JSON")
    keygen.set_defaults(func=cmd_keygen)

    enc = sub.add_parser("encrypt", help="encrypt a message with a public key")
    enc.add_argument("--key", required=True, help="public key PEM file")
    enc.add_argument("message")
    enc.add_argument("--json", action="store_true", help="print the trace as JSON")
    enc.set_defaults(func=cmd_encrypt)

    dec = sub.add_parser("decrypt", help="decrypt a ciphertext with a private key")
    dec.add_argument("--key", required=True, help="private key PEM file")
    dec.add_argument("ciphertext")
    dec.add_argument("--json", action="store_true", help="print the trace as JSON")
    dec.set_defaults(func=cmd_decrypt)

    demo = sub.add_parser("demo", help="generate keys and run a full round trip")
    add_generation_options(demo)
    demo.add_argument("--message", default="Hello, RSA!")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for rsatrace."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )

    try:
        return args.func(args)
    except (RSATraceError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
