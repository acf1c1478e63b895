# Terminal chat client for the Bible Chat Assistant API
import argparse
import os

import requests
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

BASE_URL = os.getenv("CHAT_API_URL", "http://localhost:8000/api")
console = Console()


def ask_question(question: str, history: list, dev_mock: bool = False):
    """Send a question with the running history; returns the answer text or None"""
    payload = {"question": question, "contents": history, "devMock": dev_mock}
    try:
        response = requests.post(f"{BASE_URL}/chat", json=payload, timeout=90)
    except requests.RequestException as e:
        console.print(f"[red]❌ Request failed:[/red] {e}")
        return None

    if response.status_code != 200:
        try:
            error = response.json().get("error", response.text)
        except ValueError:
            error = response.text
        console.print(f"[red]❌ {error}[/red]")
        return None

    return response.text


def server_dev_mock_enabled() -> bool:
    try:
        response = requests.get(f"{BASE_URL}/chat", timeout=5)
        response.raise_for_status()
        return bool(response.json().get("devMockEnabled"))
    except (requests.RequestException, ValueError):
        return False


def show_examples():
    """Show usage examples"""
    console.print("\n[bold blue]📚 Usage Examples:[/bold blue]")

    examples = [
        ("Single Verse", "Explain John 3:16"),
        ("Verse Range", "What is Psalm 23:1-6 about?"),
        ("Cross-chapter Range", "Summarize John 3:16-4:2"),
        ("Topic", "What does the Bible say about forgiveness?"),
        ("History", "Who wrote Genesis?"),
    ]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="green", no_wrap=True)
    table.add_column(style="white")

    for example_type, example_query in examples:
        table.add_row(f"{example_type}:", f'"{example_query}"')

    console.print(table)


def show_help():
    """Show help information"""
    help_text = """
[bold blue]🔍 Bible Chat Assistant Help[/bold blue]

Ask any Bible question. References such as [green]John 3:16[/green] or ranges
such as [green]Genesis 1:1-3[/green] are looked up and shown to the model first.

[bold yellow]Commands:[/bold yellow]
• [cyan]help[/cyan] - Show this help
• [cyan]examples[/cyan] - Show example questions
• [cyan]clear[/cyan] - Start a new conversation
• [cyan]exit/quit[/cyan] - Exit the program
"""
    console.print(Panel(help_text, border_style="blue"))


def run_chat_cli(dev_mock: bool = False):
    console.print("[bold magenta]🧬 Bible Chat Assistant[/bold magenta]")
    if dev_mock or server_dev_mock_enabled():
        console.print("[yellow]DEV MOCK mode: answers are canned[/yellow]")
    console.print("[dim]Type 'help' for usage, 'exit' to quit[/dim]\n")

    history = []

    while True:
        try:
            question = console.input("[bold yellow]🙏 Question[/bold yellow]: ").strip()

            if question.lower() in ["exit", "quit", "q"]:
                console.print("\n👋 Goodbye!")
                break
            elif question.lower() in ["help", "h", "?"]:
                show_help()
                continue
            elif question.lower() in ["examples", "ex"]:
                show_examples()
                continue
            elif question.lower() == "clear":
                history = []
                console.print("[green]✅ Conversation cleared[/green]\n")
                continue
            elif not question:
                continue

            with console.status("[bold green]Thinking..."):
                answer = ask_question(question, history, dev_mock)

            if answer is None:
                console.print()
                continue

            console.print()
            console.print(Panel(Markdown(answer or "_(empty answer)_"), border_style="green"))
            console.print()

            history.append({"role": "user", "content": question})
            history.append({"role": "model", "content": answer})

        except KeyboardInterrupt:
            console.print("\n\n👋 Exiting...")
            break


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chat with the Bible Chat Assistant API")
    parser.add_argument("--dev-mock", action="store_true", help="Request canned development answers")
    args = parser.parse_args()
    run_chat_cli(dev_mock=args.dev_mock)
