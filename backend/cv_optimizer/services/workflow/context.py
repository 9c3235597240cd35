from dataclasses import dataclass, field
from cv_optimizer.models.conversation import Conversation, Message
from cv_optimizer.prompts import (
    build_grounding_message,
    build_refinement_request,
    build_refinement_system_prompt,
)
from cv_optimizer.services.workflow.response_parser import HTML_START_MARKER

MAX_HISTORY_PAIRS = 5

# Messages 0 and 1 are the analyze turn; refinements start here
_FIRST_REFINEMENT_INDEX = 2


@dataclass
class RefinementContext:
    """Everything sent to the model for one refinement turn."""

    system: str
    messages: list[dict] = field(default_factory=list)


def history_pairs(messages: list[Message]) -> list[tuple[Message, Message]]:
    """Complete (request, explanation) pairs after the seed pair, oldest first."""
    pairs = []
    for i in range(_FIRST_REFINEMENT_INDEX, len(messages) - 1, 2):
        pairs.append((messages[i], messages[i + 1]))
    return pairs


def assemble_refinement_context(
    conversation: Conversation,
    request: str,
    preferences_block: str = "",
    max_history_pairs: int = MAX_HISTORY_PAIRS,
) -> RefinementContext:
    """Build the bounded prompt for a refinement turn.

    Order is fixed:

    1. the original résumé and job posting, rebuilt from the record;
    2. the first explanation plus the first-turn document, as an anchor;
    3. at most ``max_history_pairs`` recent request/explanation pairs;
    4. the current document and the new request.

    Only the current document is sent in full; history pairs carry text only.
    """
    messages = [
        {
            "role": "user",
            "content": build_grounding_message(
                resume_text=conversation.original_resume_text,
                job_position=conversation.job_position,
                company=conversation.company,
                job_description=conversation.job_description,
            ),
        }
    ]

    if len(conversation.messages) >= 2:
        messages.append(
            {
                "role": "assistant",
                "content": f"{conversation.messages[1].content}\n\n{HTML_START_MARKER}\n\n{conversation.anchor_html}",
            }
        )

    pairs = history_pairs(conversation.messages)
    recent = pairs[-max_history_pairs:] if max_history_pairs > 0 else []
    for user_msg, assistant_msg in recent:
        messages.append({"role": "user", "content": user_msg.content})
        messages.append({"role": "assistant", "content": assistant_msg.content})

    messages.append(
        {
            "role": "user",
            "content": build_refinement_request(conversation.current_html, request),
        }
    )

    return RefinementContext(system=build_refinement_system_prompt(preferences_block), messages=messages)
