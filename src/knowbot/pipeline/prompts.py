from collections.abc import Sequence

from knowbot.chatbot.config import DEFAULT_DIRECTIVE, ChatbotConfig
from knowbot.conversation.types import ConversationTurn, SenderRole
from knowbot.knowledge.types import ContextBlock
from knowbot.pipeline.types import ComposedPrompt, PromptMode

START_OF_CONVERSATION = "This is the start of the conversation."

GROUNDED_PROMPT = """You are a knowledgeable assistant. Use the CONTEXT below to answer the user's question.

IMPORTANT RULES:
1. Synthesize information from ALL relevant context chunks
2. If context has PARTIAL information, provide what you know and acknowledge gaps
3. Be specific - mention features, services, pricing, timelines when available
4. Connect related information across different context sources
5. Only say "I don't have information" if context is completely irrelevant
6. Use a helpful, conversational tone - not overly cautious

FORMATTING INSTRUCTIONS:
- Use HTML formatting for better readability
- Use <strong> for important points
- Use <ul> and <li> for lists
- Use <p> for paragraphs
- Use <br> for line breaks when needed
- DO NOT mention sources or URLs in your response (they will be added automatically)

CONTEXT (from knowledge base):
{context}

CONVERSATION HISTORY:
{history}

USER QUESTION: {question}

Provide a clear, helpful answer in HTML format:"""

FALLBACK_PROMPT = """{system_prompt}

You're having a conversation with a user. They may ask about services, features, or general questions.

FORMATTING INSTRUCTIONS:
- Use HTML formatting for better readability
- Use <strong> for emphasis
- Use <ul> and <li> for lists
- Use <p> for paragraphs

CONVERSATION HISTORY:
{history}

{logic_context}

USER: {question}

ASSISTANT (be helpful and conversational, respond in HTML):"""

_GUIDELINES = """Guidelines:
- Be conversational and helpful
- Provide specific details when available
- If you're unsure, say so clearly
- Stay professional but friendly
- Format responses in HTML for better readability"""

_ROLE_LABELS = {SenderRole.USER: "User", SenderRole.BOT: "Assistant"}


def format_history(turns: Sequence[ConversationTurn], max_turns: int = 6) -> str:
    if not turns:
        return START_OF_CONVERSATION
    recent = turns[-max_turns:] if max_turns > 0 else turns
    return "\n".join(f"{_ROLE_LABELS[turn.role]}: {turn.content}" for turn in recent)


def build_system_prompt(chatbot: ChatbotConfig) -> str:
    parts = [chatbot.directive or DEFAULT_DIRECTIVE]
    if chatbot.description:
        parts.append(f"Your personality: {chatbot.description}")
    parts.append(_GUIDELINES)
    return "\n\n".join(parts)


def compose_prompt(
    chatbot: ChatbotConfig,
    question: str,
    context: ContextBlock,
    history: str,
    logic_context: str = "",
) -> ComposedPrompt:
    if not context.is_empty:
        return ComposedPrompt(
            mode=PromptMode.GROUNDED,
            text=GROUNDED_PROMPT.format(context=context.text, history=history, question=question),
        )

    return ComposedPrompt(
        mode=PromptMode.FALLBACK,
        text=FALLBACK_PROMPT.format(
            system_prompt=build_system_prompt(chatbot),
            history=history,
            logic_context=logic_context,
            question=question,
        ),
    )
