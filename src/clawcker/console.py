"""Terminal collaborators: credential prompting and browser launching."""

from __future__ import annotations

import getpass
import webbrowser


class ConsolePrompter:
    """Asks on the terminal; the API key is read without echo."""

    def select_provider(self, choices: list[str]) -> str:
        print("Select an AI provider:")
        for i, choice in enumerate(choices, start=1):
            print(f"  {i}. {choice}")
        while True:
            answer = input(f"Provider [1-{len(choices)}]: ").strip().lower()
            if answer in choices:
                return answer
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            print("Please pick one of the listed providers.")

    def prompt_secret(self, label: str) -> str:
        return getpass.getpass(f"{label}: ")


def open_browser(url: str) -> bool:
    return webbrowser.open(url)
