import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import SystemMessage, HumanMessage

from voyant import config


def safe_json_parse(txt: str) -> Dict[str, Any]:
    if not txt:
        return {}
    try:
        data = json.loads(txt)
        return data if isinstance(data, dict) else {}
    except (TypeError, ValueError):
        m = re.search(r"\{.*\}", txt, re.DOTALL)
        if m:
            try:
                data = json.loads(m.group(0))
                return data if isinstance(data, dict) else {}
            except ValueError:
                return {}
        return {}


class LLMClient(ABC):
    @abstractmethod
    async def complete(self, prompt: str, response_format: str = "text", system: Optional[str] = None) -> str:
        """Prompt in, text out. response_format='json' asks for a single JSON object."""


class ChatLLM(LLMClient):
    def __init__(self, model: Optional[str] = None, temperature: float = 0):
        self._llm = ChatOpenAI(model=model or config.OPENAI_MODEL, temperature=temperature)
        self._json_llm = self._llm.bind(response_format={"type": "json_object"})

    async def complete(self, prompt: str, response_format: str = "text", system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))
        llm = self._json_llm if response_format == "json" else self._llm
        resp = await llm.ainvoke(messages)
        return resp.content if isinstance(resp.content, str) else str(resp.content)
