# noqa
from journal.llm.prompts.instructions import build_agent_instructions
from journal.llm.prompts.response import (
    get_response_system_prompt,
    get_response_user_prompt,
)

__all__ = [
    "build_agent_instructions",
    "get_response_system_prompt",
    "get_response_user_prompt",
]
