"""Interactive CLI simulator — drive the OTP login flow from a terminal."""

import asyncio
import logging

from otp_session.config import settings
from otp_session.machine.auth_machine import AuthStateMachine
from otp_session.models.events import (
    BackToLoginClicked,
    EmailChanged,
    LogoutClicked,
    OtpChanged,
    ResendOtpClicked,
    SendOtpClicked,
    VerifyOtpClicked,
)
from otp_session.models.state import AuthState, Login, OtpPending, Session

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
BOLD = "\033[1m"
RESET = "\033[0m"

COMMANDS = {
    "send": SendOtpClicked,
    "verify": VerifyOtpClicked,
    "resend": ResendOtpClicked,
    "back": BackToLoginClicked,
    "logout": LogoutClicked,
}


def render(state: AuthState) -> str:
    """Render a state as a short multi-line summary."""
    if isinstance(state, Login):
        lines = [f"{BOLD}[Login]{RESET} email={state.email or '-'}"]
    elif isinstance(state, OtpPending):
        lines = [
            f"{BOLD}[OTP]{RESET} sent to {state.email}",
            f"  code (local delivery): {YELLOW}{state.generated_otp}{RESET}",
            f"  entered: {state.entered_digits or '-'}",
            f"  attempts left: {state.attempts_remaining}  "
            f"expires in: {state.remaining_seconds}s  "
            f"resend in: {state.resend_cooldown_remaining}s",
        ]
    else:
        lines = [
            f"{BOLD}[Session]{RESET} {state.email}",
            f"  active for {state.elapsed_seconds}s",
        ]
    error = getattr(state, "error_message", None)
    if error:
        lines.append(f"  {RED}{error}{RESET}")
    return "\n".join(lines)


async def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    print(f"\n{BOLD}{'=' * 52}")
    print(f"  🔐  {settings.app_name} — Simulator")
    print(f"{'=' * 52}{RESET}\n")
    print(f"{DIM}Commands: email <addr> | send | otp <digits> | verify{RESET}")
    print(f"{DIM}          resend | back | logout | state | quit{RESET}\n")

    machine = AuthStateMachine.create()
    print(render(machine.state) + "\n")

    try:
        await _command_loop(machine)
    finally:
        await machine.aclose()


async def _command_loop(machine: AuthStateMachine) -> None:
    while True:
        try:
            # Read in a worker thread so the timers keep ticking
            user_input = (await asyncio.to_thread(input, f"{BLUE}{BOLD}> {RESET}")).strip()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Goodbye!{RESET}")
            return

        if not user_input:
            continue

        command, _, argument = user_input.partition(" ")
        command = command.lower()

        if command == "quit":
            print(f"{DIM}Goodbye!{RESET}")
            return

        if command == "email":
            machine.dispatch(EmailChanged(argument.strip()))
        elif command == "otp":
            machine.dispatch(OtpChanged(argument))
        elif command in COMMANDS:
            machine.dispatch(COMMANDS[command]())
        elif command != "state":
            print(f"{RED}Unknown command: {command}{RESET}\n")
            continue

        print(f"{GREEN}{render(machine.state)}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
