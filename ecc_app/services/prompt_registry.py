"""Prompt templates and canned fallback content for ECC generation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional


PROMPT_REGISTRY_VERSION = "2025-07-14"


PROMPT_SUMMARY = """Please create a {detail_level} summary of the following conversation.

Requirements:
- Reduce the content by {reduction_percent}% while preserving key information
- {instructions}
- Keep important context, decisions, and conclusions
- Maintain the flow of conversation
- Focus on educational content, questions asked, and answers provided
- Maximum length: {max_length} characters
{detail_extra}
Conversation to summarize:
{text}

Summary:"""

DEFAULT_SUMMARY_INSTRUCTIONS = "Create a summary focusing on key points and main topics discussed."
DETAILED_SUMMARY_EXTRA = "- Include specific examples and explanations that might be referenced later\n"

FALLBACK_STORY = """🌟 **Educational Story Framework**

📚 **The Tale of Courage and Kindness**

Once upon a time, there was a wise king who learned important lessons from an unexpected friendship with a loyal dog and a humble beggar. Here's how you can develop this story:

**Key Characters:**
- **The King** - Represents leadership and responsibility
- **The Dog** - Shows loyalty, friendship, and unconditional love
- **The Beggar** - Teaches humility, compassion, and seeing beyond appearances

**Important Life Lessons:**
1. **True Worth** - People's value isn't measured by wealth or status
2. **Kindness Matters** - Small acts of kindness can change everything
3. **Friendship** - Real friends stick by you through good and bad times
4. **Learning from Everyone** - Wisdom can come from unexpected places

**Questions to Think About:**
- What makes someone truly rich?
- How can we show kindness to others every day?
- What can we learn from animals about loyalty?
- Why is it important to help those in need?

**Activities:**
- Draw your favorite character from the story
- Write about a time when you showed kindness
- Think of ways to help others in your community

*💡 The AI service is temporarily busy. Try again soon for a complete, customized story!*"""

FALLBACK_OUTLINE = """📚 **Educational Content Outline**

**Topic Overview:** {topic_preview}...

**Learning Structure:**

1. **Getting Started**
   - What we're going to learn
   - Why this topic matters for {audience}
   - Fun facts to spark curiosity

2. **Main Ideas**
   - Core concepts explained simply
   - Important words to remember
   - Real-world examples you can relate to

3. **Hands-On Learning**
   - Discussion questions
   - Fun activities to try
   - Ways to explore more

4. **Putting It Together**
   - Quick review of what we learned
   - How this connects to other subjects
   - Next steps in your learning journey

**💡 Helpful Tips:**
- Take notes while reading
- Ask questions if something isn't clear
- Practice what you learn
- Share your knowledge with others

*🔄 The AI service is temporarily busy. Please try again in a few minutes for detailed, personalized educational content!*"""

AUDIENCE_LEVEL_RE = re.compile(r'"([^"]*?)" level')
GRADE_RE = re.compile(r'Grade\s*(\d+)', re.IGNORECASE)


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: str
    name: str
    template: str


PROMPT_RECORDS: List[PromptRecord] = [
    PromptRecord("conversation_summary", "Conversation summary", PROMPT_SUMMARY),
    PromptRecord("fallback_story", "Fallback story framework", FALLBACK_STORY),
    PromptRecord("fallback_outline", "Fallback learning outline", FALLBACK_OUTLINE),
]


def get_prompt_metadata() -> Dict[str, object]:
    return {
        "version": PROMPT_REGISTRY_VERSION,
        "count": len(PROMPT_RECORDS),
        "ids": [record.prompt_id for record in PROMPT_RECORDS],
    }


def detect_audience_level(message: str) -> Optional[str]:
    for pattern in (AUDIENCE_LEVEL_RE, GRADE_RE):
        match = pattern.search(message or "")
        if match:
            return match.group(1)
    return None


def build_fallback_content(message: str) -> str:
    message = message or ""
    if "story" in message.lower():
        return FALLBACK_STORY
    return FALLBACK_OUTLINE.format(
        topic_preview=message[:100],
        audience=detect_audience_level(message) or "students",
    )


def build_summary_prompt(
    text: str,
    target_reduction: float = 0.55,
    max_length: Optional[int] = None,
    detail_level: str = "concise",
    instructions: Optional[str] = None,
) -> str:
    resolved_max = max_length or math.floor(len(text) * (1 - target_reduction) + 1e-9)
    return PROMPT_SUMMARY.format(
        detail_level=detail_level,
        reduction_percent=f"{target_reduction * 100:.0f}",
        instructions=instructions or DEFAULT_SUMMARY_INSTRUCTIONS,
        max_length=resolved_max,
        detail_extra=DETAILED_SUMMARY_EXTRA if detail_level == "detailed" else "",
        text=text,
    )
