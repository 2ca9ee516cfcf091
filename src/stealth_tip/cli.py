from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

from .amounts import to_display
from .balance import BalanceResolver
from .config import DisplaySettings, Settings
from .context import AppContext
from .errors import StealthTipError, ValidationError
from .jackpot import JackpotPoller
from .links import build_share_link, parse_share_link
from .models import JackpotSnapshot, Outcome, OutcomeKind, StatusEvent
from .orchestrator import TransactionOrchestrator
from .project_constants import JACKPOT_POLL_INTERVAL_S, TOKEN_SYMBOL
from .salt import generate_salt, salt_from_hex, salt_to_hex
from .stealth import derive_stealth_address, normalize_username, parse_account, ss58_encode
from .streak import StreakTracker


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def fmt(units: int) -> str:
    return f"{to_display(units)} {TOKEN_SYMBOL}"


def _with_context(
    args: argparse.Namespace, op: Callable[[AppContext], Awaitable[int]]
) -> int:
    settings = Settings.from_env(
        rpc_url_override=args.rpc_url,
        timeout_override=args.timeout,
        ss58_format_override=args.ss58_format,
        link_base_url_override=args.base_url,
    )

    async def runner() -> int:
        ctx = await AppContext.connect(settings)
        try:
            return await op(ctx)
        finally:
            await ctx.aclose()

    return asyncio.run(runner())


def _display(args: argparse.Namespace) -> DisplaySettings:
    return DisplaySettings.from_env(args.ss58_format, args.base_url)


def _username_and_salt(args: argparse.Namespace) -> Tuple[str, bytes]:
    if getattr(args, "link", None):
        return parse_share_link(args.link)
    if not args.username or not args.salt:
        raise ValidationError("Provide --username and --salt, or --link.")
    return normalize_username(args.username), salt_from_hex(args.salt)


def _print_status(event: StatusEvent) -> None:
    suffix = f" in {event.block_hash}" if event.block_hash else ""
    stalled = " (still waiting)" if event.stalled else ""
    print(f"  … {event.status.value}{suffix}{stalled}")


def _print_outcome(outcome: Outcome) -> None:
    print("----------------------------------------")
    if outcome.kind == OutcomeKind.JACKPOT_WON:
        won = fmt(outcome.amount) if outcome.amount is not None else "the pool"
        print(f"🎉 JACKPOT! You won {won}")
    elif outcome.kind == OutcomeKind.NO_WIN:
        print("🎲 No win this time. Maybe next time!")
    elif outcome.kind == OutcomeKind.REGISTERED:
        print("🪪 Username registered")
    else:
        print("✅ Finalized")
    if outcome.streak is not None:
        print(f"Streak        : {outcome.streak}")
    print(f"Block         : {outcome.block_hash}")
    print(f"Request       : {outcome.correlation_id}")


def _orchestrator(ctx: AppContext, slot: str, tracker=None) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        ctx.contract,
        ctx.signer,
        ctx.settings.contract_address,
        slot=slot,
        on_status=_print_status,
        streak_tracker=tracker,
    )


# ------------------------
# Offline commands
# ------------------------
def cmd_salt(args: argparse.Namespace) -> int:
    salt = generate_salt()
    print("🔑 Salt (share privately with the recipient):")
    print(salt_to_hex(salt))
    if args.username:
        print("Link:")
        print(build_share_link(
            _display(args).link_base_url, args.username, salt, game=args.game
        ))
    return 0


def cmd_address(args: argparse.Namespace) -> int:
    username, salt = _username_and_salt(args)
    address = derive_stealth_address(username, salt)
    print(f"Username      : {username}")
    print(f"Stealth (hex) : 0x{address.hex()}")
    print(f"Stealth (SS58): {ss58_encode(address, _display(args).ss58_format)}")
    return 0


def cmd_link(args: argparse.Namespace) -> int:
    username, salt = parse_share_link(args.url)
    print(f"Username      : {username}")
    print(f"Salt          : {salt_to_hex(salt)}")
    return 0


# ------------------------
# Ledger commands
# ------------------------
def cmd_balance(args: argparse.Namespace) -> int:
    username, salt = _username_and_salt(args)

    async def op(ctx: AppContext) -> int:
        resolver = BalanceResolver(ctx.contract, ctx.settings.contract_address)
        amount = await resolver.resolve(username, salt, ctx.caller_address)
        print(f"💰 Balance     : {fmt(amount)}")
        print(f"Stealth       : {ctx.account_text(resolver.last_stealth_address)}")
        return 0

    return _with_context(args, op)


def cmd_tip(args: argparse.Namespace) -> int:
    salt = salt_from_hex(args.salt) if args.salt else generate_salt()
    username = normalize_username(args.username)
    game = args.cmd == "play"

    # The salt is the only way to reach the funds later: show it before sending.
    print("🔑 Salt (keep it, share privately):")
    print(salt_to_hex(salt))
    print(build_share_link(_display(args).link_base_url, username, salt, game=game))

    async def op(ctx: AppContext) -> int:
        if game:
            tracker = StreakTracker(ctx.contract)
            outcome = await _orchestrator(ctx, "play", tracker).tip_and_play(
                username, args.amount, salt
            )
            _print_outcome(outcome)
            if outcome.streak is not None:
                view = tracker.view()
                print(f"Multiplier    : x{view.multiplier}")
        else:
            outcome = await _orchestrator(ctx, "tip").tip(username, args.amount, salt)
            _print_outcome(outcome)
        return 0

    return _with_context(args, op)


def cmd_withdraw(args: argparse.Namespace) -> int:
    username, salt = _username_and_salt(args)

    async def op(ctx: AppContext) -> int:
        outcome = await _orchestrator(ctx, "withdraw").withdraw(username, salt)
        _print_outcome(outcome)
        return 0

    return _with_context(args, op)


def cmd_register(args: argparse.Namespace) -> int:
    async def op(ctx: AppContext) -> int:
        orch = _orchestrator(ctx, "register")
        if args.cmd == "register-premium":
            outcome = await orch.register_premium_username(args.username)
        else:
            outcome = await orch.register_username(args.username)
        _print_outcome(outcome)
        return 0

    return _with_context(args, op)


def cmd_owner(args: argparse.Namespace) -> int:
    username = normalize_username(args.username)

    async def op(ctx: AppContext) -> int:
        if args.premium:
            owner = await ctx.contract.get_premium_owner(ctx.caller_address, username)
        else:
            owner = await ctx.contract.get_username_owner(ctx.caller_address, username)
        print(f"Owner of {username}: {ctx.account_text(owner) if owner else 'unregistered'}")
        return 0

    return _with_context(args, op)


def _print_jackpot(ctx: AppContext, snapshot: JackpotSnapshot) -> None:
    winner = ctx.account_text(snapshot.last_winner) if snapshot.last_winner else "N/A"
    print(f"🏆 Jackpot {fmt(snapshot.pool)} | last winner {winner}")


def cmd_jackpot(args: argparse.Namespace) -> int:
    async def op(ctx: AppContext) -> int:
        poller = JackpotPoller(
            ctx.contract,
            ctx.caller_address,
            interval_s=args.interval,
            on_update=lambda s: _print_jackpot(ctx, s),
            on_error=lambda e: print(f"⚠️  Error fetching jackpot data: {e}"),
        )
        if not args.watch:
            await poller.poll_once()
            return 0

        poller.start()
        try:
            await asyncio.Event().wait()
        finally:
            await poller.aclose()
        return 0

    return _with_context(args, op)


def cmd_streak(args: argparse.Namespace) -> int:
    async def op(ctx: AppContext) -> int:
        if args.address:
            account = parse_account(args.address)
        elif ctx.signer is not None:
            account = ctx.signer.address
        else:
            raise ValidationError("Pass --address or configure a signer.")

        tracker = StreakTracker(ctx.contract)
        state = await tracker.refresh(ctx.caller_address, account)
        view = tracker.view()
        print(f"Account       : {ctx.account_text(account)}")
        print(f"Streak        : {state.count} (x{view.multiplier})")
        print(f"Active        : {'yes' if view.active else 'no'}")
        return 0

    return _with_context(args, op)


def cmd_fees(args: argparse.Namespace) -> int:
    async def op(ctx: AppContext) -> int:
        orch = _orchestrator(ctx, "admin")
        if args.cmd == "collect-fees":
            pending = await ctx.contract.get_accumulated_fees(ctx.caller_address)
            print(f"Collecting {fmt(pending)}")
            outcome = await orch.collect_fees()
        else:
            outcome = await orch.set_fee_enabled(args.state == "on")
        _print_outcome(outcome)
        return 0

    return _with_context(args, op)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="stealth-tip",
        description="Stealth tipping and jackpot game client.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override ledger RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=None, help="RPC timeout seconds.")
    p.add_argument(
        "--ss58-format",
        type=int,
        default=None,
        help="Address prefix for display (else SS58_FORMAT env, else Astar).",
    )
    p.add_argument(
        "--base-url",
        default=None,
        help="Base URL for share links (else TIP_LINK_BASE_URL env).",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    def pair_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--username", default=None, help="Recipient handle, e.g. @bob.")
        sp.add_argument("--salt", default=None, help="64-char hex salt (0x optional).")
        sp.add_argument("--link", default=None, help="Share link carrying both.")

    s = sub.add_parser("salt", help="Generate a fresh salt (and optionally a link).")
    s.add_argument("--username", default=None)
    s.add_argument("--game", action="store_true", help="Build a game link.")
    s.set_defaults(func=cmd_salt)

    a = sub.add_parser("address", help="Derive the stealth address offline.")
    pair_args(a)
    a.set_defaults(func=cmd_address)

    lk = sub.add_parser("link", help="Decode a share link.")
    lk.add_argument("url")
    lk.set_defaults(func=cmd_link)

    b = sub.add_parser("balance", help="Check funds under a username + salt.")
    pair_args(b)
    b.set_defaults(func=cmd_balance)

    for name, text in (("tip", "Send a stealth tip."), ("play", "Tip and enter the jackpot.")):
        t = sub.add_parser(name, help=text)
        t.add_argument("--username", required=True)
        t.add_argument("--amount", required=True, help=f"Amount in {TOKEN_SYMBOL}.")
        t.add_argument("--salt", default=None, help="Reuse a salt (else a new one).")
        t.set_defaults(func=cmd_tip)

    w = sub.add_parser("withdraw", help="Withdraw stealth funds to your account.")
    pair_args(w)
    w.set_defaults(func=cmd_withdraw)

    for name in ("register", "register-premium"):
        r = sub.add_parser(name, help=f"{name.replace('-', ' ').capitalize()} a username.")
        r.add_argument("--username", required=True)
        r.set_defaults(func=cmd_register)

    o = sub.add_parser("owner", help="Look up who owns a username.")
    o.add_argument("--username", required=True)
    o.add_argument("--premium", action="store_true")
    o.set_defaults(func=cmd_owner)

    j = sub.add_parser("jackpot", help="Show the jackpot pool.")
    j.add_argument("--watch", action="store_true", help="Keep polling.")
    j.add_argument("--interval", type=float, default=JACKPOT_POLL_INTERVAL_S)
    j.set_defaults(func=cmd_jackpot)

    st = sub.add_parser("streak", help="Show the play streak of an account.")
    st.add_argument("--address", default=None, help="SS58 or 0x account id.")
    st.set_defaults(func=cmd_streak)

    f = sub.add_parser("fees", help="Owner only: toggle the tip fee.")
    f.add_argument("state", choices=("on", "off"))
    f.set_defaults(func=cmd_fees)

    c = sub.add_parser("collect-fees", help="Owner only: collect accumulated fees.")
    c.set_defaults(func=cmd_fees)

    return p


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except StealthTipError as e:
        print(f"❌ {type(e).__name__}: {e}")
        code = 1
    except KeyboardInterrupt:
        code = 130
    raise SystemExit(code)
