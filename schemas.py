from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional

class CamelModel(BaseModel):
    # JSON은 camelCase (userMessage, maxTokens ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class SimpleChatRequest(CamelModel):
    message: Optional[str] = None

class MessagesChatRequest(CamelModel):
    system_message: Optional[str] = None
    user_message: Optional[str] = None

class ConversationMessage(CamelModel):
    type: str
    content: Optional[str] = None

class ConversationChatRequest(CamelModel):
    messages: List[ConversationMessage]

class AdvancedChatRequest(CamelModel):
    system_message: Optional[str] = None
    user_message: Optional[str] = None

    # 숫자가 아니면 기본값을 쓰므로 타입을 강제하지 않는다
    temperature: Any = None
    max_tokens: Any = None
    top_p: Any = None
    frequency_penalty: Any = None
    presence_penalty: Any = None
    stop_sequences: Optional[List[str]] = None

class DirectChatRequest(CamelModel):
    message: Optional[str] = None
