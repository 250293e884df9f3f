"""Default system prompts."""

DEFAULT_CHAT_PROMPT = "You are a helpful AI assistant."

KNOWLEDGE_BASE_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to a knowledge base. "
    "When asked about specific information or documents, check the knowledge base first."
)
