"""
Command-line interface for DNS wallet claims.

USAGE
=====
  # Generate a private claim (key from argument, $CLAIM_PRIVATE_KEY or prompt)
  dnsclaim generate example.com

  # Generate a public claim (wallet address published in the TXT record)
  dnsclaim generate example.com 0x<64 hex> --public --days 30

  # Verify a claim file against DNS
  dnsclaim verify claims/1a2b3c4d.json

  # Verify every public claim published for a domain (optionally one id)
  dnsclaim verify-dns example.com
  dnsclaim verify-dns example.com 1a2b3c4d --wallet 0xAbC...

  # Verify a legacy aqua._wallet.example.com binding
  dnsclaim verify-dns example.com --legacy

  # Run the claim server (save-claim endpoint + JSON API)
  dnsclaim server --port 3000

EXIT CODES
==========
  0 - Success (claim generated, or verification passed)
  1 - Verification failed, or an error occurred
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys

from dnsclaim.config import Config
from dnsclaim.errors import ClaimError, InvalidClaimFile

logger = logging.getLogger("dnsclaim.cli")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dnsclaim",
        description="Bind Ethereum wallets to DNS domains with signed TXT record claims.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable DEBUG-level logging output.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate and sign a new claim.")
    generate.add_argument("domain", help="Domain name (e.g. example.com).")
    generate.add_argument(
        "private_key",
        nargs="?",
        default=None,
        help="Hex private key. Falls back to $CLAIM_PRIVATE_KEY, then a prompt.",
    )
    generate.add_argument(
        "--public",
        action="store_true",
        default=False,
        help="Publish the wallet address in the TXT record (no claim secret).",
    )
    generate.add_argument(
        "--days",
        type=int,
        default=Config.DEFAULT_EXPIRATION_DAYS,
        help="Claim lifetime in days (default: %(default)s).",
    )
    generate.add_argument(
        "--subdomain",
        metavar="NAME",
        default=None,
        help="Publish under NAME instead of the allocated _aw subdomain.",
    )
    generate.add_argument(
        "--claims-dir",
        metavar="DIR",
        default=Config.CLAIMS_DIR,
        help="Directory the claim file is written to (default: %(default)s).",
    )

    verify = commands.add_parser("verify", help="Verify a claim file against DNS.")
    verify.add_argument("claim_file", help="Path to the claim JSON file.")

    verify_dns = commands.add_parser("verify-dns", help="Verify public claims published for a domain.")
    verify_dns.add_argument("domain", help="Domain name (e.g. example.com).")
    verify_dns.add_argument("claim_id", nargs="?", default=None, help="Only verify this claim id.")
    verify_dns.add_argument("--wallet", default=None, help="Only verify claims for this wallet.")
    verify_dns.add_argument(
        "--legacy",
        action="store_true",
        default=False,
        help="Verify the legacy aqua._<key>.<domain> wallet binding instead.",
    )
    verify_dns.add_argument(
        "--lookup-key",
        metavar="KEY",
        default="wallet",
        help="Legacy record key (default: %(default)s).",
    )

    server = commands.add_parser("server", help="Run the claim server.")
    server.add_argument("--host", default="127.0.0.1")
    server.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", "3000")),
        help="Listen port (default: $PORT or 3000).",
    )

    return parser


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    """Configure root logger for command-line runs.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


# ---------------------------------------------------------------------------
# Component construction
# ---------------------------------------------------------------------------


def _resolver():
    from dnsclaim.claims.resolver import DnsTxtResolver, ResolverSettings

    return DnsTxtResolver(ResolverSettings.from_config(Config))


def _verifier():
    from dnsclaim.claims.verifier import ClaimVerifier
    from dnsclaim.utils.rate_limit import RateLimiter

    return ClaimVerifier(
        _resolver(),
        rate_limiter=RateLimiter(Config.RATE_LIMIT_MAX, Config.RATE_LIMIT_WINDOW_SECONDS),
        max_clock_skew=Config.MAX_CLOCK_SKEW_SECONDS,
    )


def _read_private_key(value: str | None) -> str:
    if value:
        return value
    env_key = os.environ.get("CLAIM_PRIVATE_KEY")
    if env_key:
        return env_key
    return getpass.getpass("Private key (hex): ")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace) -> int:
    from dnsclaim.claims.allocator import SubdomainAllocator
    from dnsclaim.claims.generator import ClaimGenerator
    from dnsclaim.utils.claim_store import save_claim

    generator = ClaimGenerator(
        SubdomainAllocator(_resolver(), max_claims=Config.MAX_CLAIMS_PER_SUBDOMAIN),
        default_expiration_days=Config.DEFAULT_EXPIRATION_DAYS,
    )
    private_key = _read_private_key(args.private_key)

    try:
        claim = asyncio.run(
            generator.generate_claim(
                args.domain,
                private_key,
                target_subdomain=args.subdomain,
                expiration_days=args.days,
                is_public=args.public,
            )
        )
    except ClaimError as exc:
        logger.error("Claim generation failed: %s (%s)", exc.message, exc.code)
        return 1

    path = save_claim(args.claims_dir, claim)

    print(f"Claim ID:   {claim.unique_id}")
    print(f"Wallet:     {claim.wallet_address}")
    print(f"Domain:     {claim.domain_name}")
    print(f"Claim file: {path}")
    print()
    print("Publish this TXT record:")
    print(f"  Name:  {claim.txt_subdomain_name}")
    print(f"  Value: {claim.txt_record}")
    if claim.continuation_update:
        print()
        print("Replace the continuation index record:")
        print(f"  Name:  _aw.{claim.domain_name}")
        print(f"  Value: {claim.continuation_update}")
    if not claim.is_public:
        print()
        print("Keep the claim file private: it holds the claim secret needed for verification.")
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    from dnsclaim.utils.claim_store import load_claim

    try:
        claim = load_claim(args.claim_file)
    except InvalidClaimFile as exc:
        logger.error("Verification error: %s", exc.message)
        return 1

    logger.info(
        "Claim ID: %s  Domain: %s  Wallet: %s  DNS: %s",
        claim.unique_id,
        claim.domain_name,
        claim.wallet_address,
        claim.txt_subdomain_name,
    )

    outcome = asyncio.run(_verifier().verify_claim(claim))
    if not outcome.valid:
        print("Verification FAILED")
        print("  - Check DNS record format: id=...&itime=...&etime=...&sig=...")
        print("  - Confirm the claim file is correct and the signature matches")
        print(f"  - Test with: dig TXT {claim.txt_subdomain_name}")
        return 1

    print(f"Verification PASSED: {outcome.wallet} is bound to {outcome.domain} until {outcome.expires_at}")
    for advisory in outcome.advisories:
        print(f"Note: {advisory}")
    return 0


def _cmd_verify_dns(args: argparse.Namespace) -> int:
    if args.legacy:
        scan = _verifier().verify_wallet_binding(
            args.domain, lookup_key=args.lookup_key, expected_wallet=args.wallet
        )
    else:
        scan = _verifier().verify_from_dns(args.domain, expected_wallet=args.wallet, claim_id=args.claim_id)
    result = asyncio.run(scan)
    if not result.valid:
        print(f"Verification FAILED for {result.domain}")
        return 1

    print(f"Verified {len(result.valid_claims)} claim(s) for {result.domain}:")
    for outcome in result.valid_claims:
        print(f"  {outcome.claim_id or outcome.mode}  {outcome.wallet}  expires {outcome.expires_at}")
    for advisory in result.advisories:
        print(f"Note: {advisory}")
    return 0


def _cmd_server(args: argparse.Namespace) -> int:
    from dnsclaim import create_app

    app = create_app()
    logger.info("Claims will be saved to: %s", os.path.abspath(app.config["CLAIMS_DIR"]))
    app.run(host=args.host, port=args.port)
    return 0


_COMMANDS = {
    "generate": _cmd_generate,
    "verify": _cmd_verify,
    "verify-dns": _cmd_verify_dns,
    "server": _cmd_server,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Integer exit code: 0 for success, 1 for failure.
    """
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        return _COMMANDS[args.command](args)
    except Exception:
        logger.exception("FATAL: %s command failed.", args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
