"""Provider interface shared by every chat model backend."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ChatRequest:
    """One chat completion: OpenAI-style messages plus sampling options.

    ``json_mode`` asks for a bare JSON object. Backends that cannot enforce
    it leave the format to the prompt.
    """

    model: str
    messages: List[Dict[str, str]]
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    json_mode: bool = False


class LLMProvider(ABC):
    """A chat backend bound to one API key.

    Keys are handed in by the caller, never read from the environment,
    so one process can serve runs that bring their own credentials.
    """

    name: str = "base"
    key_env: str = ""
    key_url: str = ""

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError(f"{self.key_env} is required. Get one at {self.key_url}")
        self.client = self._build_client(api_key)

    @abstractmethod
    def _build_client(self, api_key: str) -> Any:
        ...

    @abstractmethod
    def complete(self, request: ChatRequest) -> str:
        """Run *request* and return the reply text."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
