"""Console front end for the assistant widget.

Lines are sent to the streaming endpoint; prefix a line with ``?`` to use
the structured endpoint, or type a number to click a suggestion chip.
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storefront_assistant.client.render import render_product_card
from storefront_assistant.client.session import ConversationSession
from storefront_assistant.client.transport import AssistantClient


class ConsolePrinter:
    """Prints streamed text as it arrives and whole messages otherwise."""

    def __init__(self):
        self.printed = {}
        self.extras_shown = set()

    def __call__(self, event: str, session: ConversationSession):
        if event != "render":
            return
        for message in session.messages:
            shown = self.printed.get(message.id)
            if shown is None:
                if message.role == "user":
                    self.printed[message.id] = message.content
                    continue
                print(f"\nAI: {message.content}", end="", flush=True)
                self.printed[message.id] = message.content
            elif len(message.content) > len(shown):
                print(message.content[len(shown):], end="", flush=True)
                self.printed[message.id] = message.content
        last = session.messages[-1] if session.messages else None
        if last is not None and (last.products or last.suggestions) and last.id not in self.extras_shown:
            self.extras_shown.add(last.id)
            print()
            for product in last.products or []:
                print(render_product_card(product))
            for index, suggestion in enumerate(last.suggestions or [], start=1):
                print(f"  [{index}] {suggestion}")


async def main(base_url: str):
    session = ConversationSession(AssistantClient(base_url))
    session.subscribe(ConsolePrinter())
    session.open()
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "\n> ")
            except EOFError:
                break
            line = line.strip()
            if line in ("/quit", "/exit"):
                break
            last = session.messages[-1] if session.messages else None
            if line.isdigit() and last is not None and last.suggestions:
                index = int(line) - 1
                if 0 <= index < len(last.suggestions):
                    await session.click_suggestion(last.suggestions[index])
                continue
            if line.startswith("?"):
                await session.submit_ask(line[1:])
            else:
                await session.submit_stream(line)
            if session.error:
                print(f"\n! {session.error}")
    finally:
        await session.aclose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chat with the storefront assistant")
    parser.add_argument("--url", default="http://localhost:3565", help="Assistant API base URL")
    args = parser.parse_args()
    asyncio.run(main(args.url))
