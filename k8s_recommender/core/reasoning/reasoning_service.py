"""
Reasoning service: the validation boundary between the pipeline and the LLM.

Each prompt kind has a system prompt, a human template and a response schema.
Model output is treated as untrusted text: JSON is extracted from fences or
surrounding prose, then validated with a PydanticOutputParser. One retry with
a stricter instruction is made before giving up with ReasoningParseError.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Tuple, Type, Union

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import BaseModel

from k8s_recommender.core.reasoning.prompts import (
    ENHANCE_HUMAN_PROMPT,
    ENHANCE_SYSTEM_PROMPT,
    FORMAT_INSTRUCTION,
    RANK_HUMAN_PROMPT,
    RANK_SYSTEM_PROMPT,
    SELECT_HUMAN_PROMPT,
    SELECT_SYSTEM_PROMPT,
    STRICT_FORMAT_INSTRUCTION,
)
from k8s_recommender.core.reasoning.schemas import EnhanceResponse, RankResponse, SelectResponse
from k8s_recommender.utils.exceptions import ReasoningParseError, ReasoningUnavailableError
from k8s_recommender.utils.logger import AgentLogger

reasoning_logger = AgentLogger("REASONING_SERVICE")


class PromptKind(str, Enum):
    SELECT = "select"
    RANK = "rank"
    ENHANCE = "enhance"


_PROMPTS: Dict[PromptKind, Tuple[str, str, Type[BaseModel]]] = {
    PromptKind.SELECT: (SELECT_SYSTEM_PROMPT, SELECT_HUMAN_PROMPT, SelectResponse),
    PromptKind.RANK: (RANK_SYSTEM_PROMPT, RANK_HUMAN_PROMPT, RankResponse),
    PromptKind.ENHANCE: (ENHANCE_SYSTEM_PROMPT, ENHANCE_HUMAN_PROMPT, EnhanceResponse),
}


def extract_json(text: str) -> str:
    """
    Pull the first JSON object out of model output.

    Handles ```json fenced blocks and objects embedded in prose. Returns the
    input unchanged when no object is found so the parser reports the error.
    """
    text = text.strip()
    if "```" in text:
        for block in text.split("```")[1::2]:
            block = block.strip()
            if block.lower().startswith("json"):
                block = block[4:].strip()
            if block.startswith("{"):
                text = block
                break

    start = text.find("{")
    if start < 0:
        return text
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return text[start:]


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content)


class BaseReasoningService(ABC):
    """Collaborator that selects, ranks and enhances resource solutions."""

    @abstractmethod
    async def invoke(self, prompt_kind: Union[PromptKind, str], context: Dict[str, Any]) -> BaseModel:
        """
        Run one reasoning step and return its validated response.

        Raises:
            ReasoningParseError: the output failed validation twice
            ReasoningUnavailableError: the model could not be reached or timed out
        """
        pass


class ReasoningService(BaseReasoningService):
    """LLM-backed reasoning over LangChain chat models."""

    def __init__(self, llm: Runnable, timeout: float = 60.0) -> None:
        self.llm = llm
        self.timeout = timeout

    @staticmethod
    def _build_prompt(prompt_kind: PromptKind, parser: PydanticOutputParser, strict: bool) -> ChatPromptTemplate:
        system_prompt, human_prompt, schema = _PROMPTS[prompt_kind]
        instruction = STRICT_FORMAT_INSTRUCTION if strict else FORMAT_INSTRUCTION
        escaped_system_prompt = system_prompt.replace('{', '{{').replace('}', '}}')
        return ChatPromptTemplate.from_messages([
            ("system", escaped_system_prompt),
            ("user", human_prompt),
            ("user", instruction.replace("{schema_name}", schema.__name__)),
        ]).partial(format_instructions=parser.get_format_instructions())

    @staticmethod
    def _variables(context: Dict[str, Any]) -> Dict[str, str]:
        return {
            key: value if isinstance(value, str) else json.dumps(value, indent=2, default=str)
            for key, value in context.items()
        }

    async def invoke(self, prompt_kind: Union[PromptKind, str], context: Dict[str, Any]) -> BaseModel:
        prompt_kind = PromptKind(prompt_kind)
        schema = _PROMPTS[prompt_kind][2]
        parser = PydanticOutputParser(pydantic_object=schema)
        variables = self._variables(context)
        raw_output = ""
        last_error = ""

        for attempt in range(2):
            chain = self._build_prompt(prompt_kind, parser, strict=attempt > 0) | self.llm
            try:
                message = await asyncio.wait_for(chain.ainvoke(variables), timeout=self.timeout)
            except asyncio.TimeoutError:
                raise ReasoningUnavailableError(
                    f"Reasoning '{prompt_kind.value}' timed out after {self.timeout}s",
                    prompt_kind=prompt_kind.value,
                )
            except KeyError as e:
                raise ReasoningParseError(
                    f"Missing context variable for '{prompt_kind.value}': {e}",
                    prompt_kind=prompt_kind.value,
                )
            except Exception as e:
                raise ReasoningUnavailableError(
                    f"Reasoning '{prompt_kind.value}' failed: {e}",
                    prompt_kind=prompt_kind.value,
                )

            raw_output = _message_text(message)
            try:
                response = parser.parse(extract_json(raw_output))
            except (OutputParserException, ValueError) as e:
                last_error = str(e)
                reasoning_logger.log_structured(
                    level="WARNING",
                    message="Reasoning output failed validation",
                    extra={"prompt_kind": prompt_kind.value, "attempt": attempt + 1, "error": last_error[:500]}
                )
                continue

            reasoning_logger.log_structured(
                level="INFO",
                message="Reasoning step completed",
                extra={"prompt_kind": prompt_kind.value, "attempt": attempt + 1}
            )
            return response

        raise ReasoningParseError(
            f"Reasoning '{prompt_kind.value}' returned invalid output twice: {last_error}",
            prompt_kind=prompt_kind.value,
            raw_output=raw_output,
        )
