#!/usr/bin/env python
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                          RSATRACE LIVE DEMO                                  ║
║                  Step-by-step RSA, one stage at a time                       ║
╚══════════════════════════════════════════════════════════════════════════════╝

This script walks through a traced RSA computation:
- Prime generation with Miller-Rabin witnesses
- Modulus and totient
- Public exponent check with the Extended Euclidean Algorithm
- Private exponent and its verification
- Encryption and decryption by square-and-multiply

Run with --auto to skip the pauses.
"""

import sys

from rsatrace.core_crypto.randomness import SeededRandomSource
from rsatrace.rsa.cipher import decrypt, encrypt
from rsatrace.rsa.keygen import generate_key_pair
from rsatrace.rsa.trace import StepKind


AUTO = "--auto" in sys.argv
KEY_BITS = 64       # small enough to read every number on screen
MESSAGE = "Hi!"
MAX_ROWS = 12       # rows shown per table before eliding


def print_header(title):
    """Print a formatted section header"""
    print("\n" + "═" * 70)
    print(f"  {title}")
    print("═" * 70)


def print_step(step_num, description):
    """Print a numbered step"""
    print(f"\n  [{step_num}] {description}")


def pause(message="Press ENTER to continue..."):
    """Pause for presenter to explain"""
    if AUTO:
        return
    print(f"\n  [PAUSE] {message}")
    input()


def print_rows(rows):
    """Print table rows, eliding the middle of long tables"""
    if len(rows) > MAX_ROWS:
        half = MAX_ROWS // 2
        rows = rows[:half] + [f"... {len(rows) - MAX_ROWS} more ..."] + rows[-half:]
    for row in rows:
        print(f"      {row}")


def show_key_generation(trace):
    print_header("PART 1: KEY GENERATION")

    primes = trace.first(StepKind.PRIME_GENERATION)
    print_step("1.1", primes.description)
    for name, search in (("p", primes.data.p), ("q", primes.data.q)):
        print(f"\n  {name} = {search.prime}  ({search.bits} bits)")
        print(f"  Rejected candidates before it: {len(search.rejected)}")
        verdict = search.verdict
        print(f"  {name} - 1 = 2^{verdict.s} × {verdict.d}")
        print_rows([
            f"witness {r.witness}: x = {r.x}, squarings {list(r.squarings)} -> "
            f"{'pass' if r.passed else 'composite'}"
            for r in verdict.rounds
        ])
    pause()

    modulus = trace.first(StepKind.MODULUS_CALCULATION)
    print_step("1.2", modulus.description)
    print(f"\n  n = {modulus.data.p} × {modulus.data.q}")
    print(f"    = {modulus.data.n}")

    totient = trace.first(StepKind.TOTIENT_CALCULATION)
    print_step("1.3", totient.description)
    print(f"\n  φ(n) = {totient.data.p_minus_1} × {totient.data.q_minus_1}")
    print(f"       = {totient.data.phi}")
    pause()

    public = trace.first(StepKind.PUBLIC_EXPONENT)
    print_step("1.4", public.description)
    print(f"\n  e = {public.data.e}")
    print("      quotient | remainder | s | t")
    print_rows([
        f"{s.quotient} | {s.remainder} | {s.coefficient1} | {s.coefficient2}"
        for s in public.data.steps
    ])
    print(f"\n  gcd(e, φ) = {public.data.gcd}")
    pause()

    private = trace.first(StepKind.PRIVATE_EXPONENT)
    print_step("1.5", private.description)
    print(f"\n  d = e⁻¹ mod φ = {private.data.d}")
    print(f"  Check: e × d mod φ = {private.data.ed_mod_phi}  "
          f"[{'OK' if private.data.verified else 'X'}]")
    pause()


def show_exponentiation(label, step):
    data = step.data
    print(f"\n  {data.base}^{data.exponent} mod {data.modulus}")
    print(f"  exponent bits: {data.binary_exponent}")
    print_rows([
        f"bit {s.index} ({s.bit}) {s.operation}: {s.before} -> {s.result}"
        for s in data.steps if s.operation != "init"
    ])
    print(f"\n  {label} = {data.result}")


def main():
    print("\n" * 2)
    print("╔" + "═" * 68 + "╗")
    print("║" + "RSATRACE - STEP-BY-STEP RSA".center(68) + "║")
    print("╚" + "═" * 68 + "╝")

    keys = generate_key_pair(KEY_BITS, rng=SeededRandomSource(2024))
    show_key_generation(keys.trace)

    print_header("PART 2: ENCRYPTION")
    encrypted = encrypt(MESSAGE, keys.public_key)
    conversion = encrypted.trace.first(StepKind.MESSAGE_CONVERSION)
    print_step("2.1", conversion.description)
    print(f"\n  Message: {MESSAGE!r}")
    print_rows([
        f"'{s.char}' {s.previous} × 256 + {s.byte} = {s.value}" for s in conversion.data.steps
    ])
    print_step("2.2", "C = M^e mod n")
    show_exponentiation("C", encrypted.trace.first(StepKind.ENCRYPTION))
    pause()

    print_header("PART 3: DECRYPTION")
    decrypted = decrypt(encrypted.ciphertext, keys.private_key)
    print_step("3.1", "M = C^d mod n")
    show_exponentiation("M", decrypted.trace.first(StepKind.DECRYPTION))
    conversion = decrypted.trace.first(StepKind.MESSAGE_CONVERSION)
    print_step("3.2", conversion.description)
    print_rows([
        f"byte {s.byte}, remaining {s.remaining}" for s in conversion.data.steps
    ])
    print(f"\n  Recovered message: {decrypted.message!r}")
    print(f"  [{'OK' if decrypted.message == MESSAGE else 'X'}] Round trip")


if __name__ == "__main__":
    main()
