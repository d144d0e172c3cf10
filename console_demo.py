"""
Offline console demo: drives the real tool dispatcher without any API keys.

Uses the built-in sample catalog and an in-memory commerce backend, so
search, cart and checkout behave end to end with no database, no Shopify
store, and no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario shopping
    python console_demo.py --scenario recovery

Interactive input is one tool call per line:
    search_wines {"country": "Italy", "max_price": 100}
    add_to_cart {"wine_name": "Barolo", "quantity": 2}
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from sommelier.config import settings
from sommelier.dispatch import ToolDispatcher, create_dispatcher, get_registered_tools
from sommelier.gateways import InMemoryCatalogStore, InMemoryCommerceBackend
from sommelier.gateways.seed_catalog import SEED_WINES
from sommelier.schemas.tool_schema import ToolCall

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """One shopper conversation against an in-process dispatcher."""

    SCENARIOS: dict[str, list[tuple[str, dict[str, Any]]]] = {
        "shopping": [
            ("search_wines", {"country": "Italy", "wine_type": "red", "max_price": 100}),
            ("get_wine", {"wine_name": "Barolo Cannubi"}),
            ("add_to_cart", {"wine_name": "Barolo Cannubi", "quantity": 2}),
            ("add_to_cart", {"wine_name": "Sancerre"}),
            ("get_cart", {}),
            ("update_cart_item", {"wine_name": "Sancerre", "quantity": 3}),
            ("checkout", {}),
        ],
        "recovery": [
            ("add_to_cart", {}),
            ("add_to_cart", {"wine_name": "Nonexistent Vintage"}),
            ("add_to_cart", {"wine_name": "Nyetimber"}),
            ("checkout", {}),
            ("add_to_cart", {"wine_name": "Whispering Angel"}),
            ("expire_cart", {}),
            ("add_to_cart", {"wine_name": "Tokaji"}),
            ("get_cart", {}),
        ],
    }

    def __init__(self, session_id: str = "console") -> None:
        self.session_id = session_id
        self.commerce = InMemoryCommerceBackend.from_catalog(SEED_WINES)
        self.dispatcher: ToolDispatcher = create_dispatcher(
            settings,
            catalog_store=InMemoryCatalogStore(SEED_WINES),
            commerce=self.commerce,
        )
        self._turn = 0

    def agent_say(self, text: str, ok: bool = True) -> None:
        color = GREEN if ok else YELLOW
        print(f"{color}{BOLD}[Sommelier]{RESET} {color}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def call(self, name: str, parameters: dict[str, Any]) -> dict[str, Any]:
        self._turn += 1
        call = ToolCall(
            tool_call_id=f"console-{self._turn}",
            name=name,
            parameters=parameters,
            session_id=self.session_id,
        )
        print(f"\n{BLUE}[Tool call] {RESET}{name} {json.dumps(parameters)}")
        wire = (await self.dispatcher.handle(call)).to_wire()
        content = json.loads(wire["content"])
        if wire["type"] == "tool_error":
            self.agent_say(content["message"], ok=False)
            self.system_log(f"tool_error code={wire['code']}")
        else:
            self.agent_say(content["message"], ok=content["success"])
        return content

    def _expire_current_cart(self) -> None:
        session = self.dispatcher.services.carts.session(f"session:{self.session_id}")
        if session.external_cart_id:
            self.commerce.expire_cart(session.external_cart_id)
            self.system_log(f"Expired cart {session.external_cart_id} in the backend")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SOMMELIER TOOL DISPATCH - {title}{RESET}")
        print(f"{BOLD}  Catalog: {len(SEED_WINES)} sample wines, in-memory cart{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _footer(self, title: str) -> None:
        session = self.dispatcher.services.carts.session(f"session:{self.session_id}")
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{DIM}  Cart state trace: {' -> '.join(session.machine.get_state_trace())}{RESET}")
        print(f"{DIM}  Backend calls: {dict(self.commerce.calls)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for name, parameters in steps:
            if name == "expire_cart":
                self._expire_current_cart()
                continue
            await self.call(name, parameters)
        self._footer(f"Scenario '{scenario}' complete.")

    async def run(self) -> None:
        self._banner("Console Demo")
        tools = ", ".join(spec.name for spec in get_registered_tools())
        self.system_log(f"Tools: {tools}")
        self.system_log("Type 'quit' to exit")

        while True:
            line = await asyncio.to_thread(input, f"\n{BLUE}> {RESET}")
            line = line.strip()
            if not line:
                continue
            if line.lower() in ("quit", "exit", "q"):
                break
            parsed = self._parse_line(line)
            if parsed is None:
                continue
            await self.call(*parsed)

        self._footer("Session ended.")

    def _parse_line(self, line: str) -> Optional[tuple[str, dict[str, Any]]]:
        name, _, raw = line.partition(" ")
        if not raw.strip():
            return name, {}
        try:
            parameters = json.loads(raw)
        except json.JSONDecodeError:
            print(f"{RED}Parameters must be a JSON object{RESET}")
            return None
        if not isinstance(parameters, dict):
            print(f"{RED}Parameters must be a JSON object{RESET}")
            return None
        return name, parameters


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Sommelier tool dispatch console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        help="Auto-play a pre-scripted scenario",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        try:
            asyncio.run(session.run())
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Session ended.{RESET}")
            sys.exit(0)


if __name__ == "__main__":
    main()
