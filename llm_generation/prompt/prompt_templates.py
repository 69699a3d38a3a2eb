"""
Prompt Templates for Relevance Compression
Extraction prompts that keep only the parts of a passage relevant to a query
"""
from dataclasses import dataclass
from typing import Dict, List, Union
from enum import Enum

# Sentinel the model must answer with when nothing in the passage is relevant
NO_OUTPUT = "NO_OUTPUT"


class PromptType(Enum):
    """Types of compression prompts"""
    EXTRACTION = "extraction"
    STRICT_EXTRACTION = "strict_extraction"


@dataclass
class PromptTemplate:
    """
    Prompt template for a query/passage pair

    Attributes:
        template: The prompt template string with {query} and {context} placeholders
        system_message: System message for chat models

    Generation settings (model, max tokens, temperature) live on the compressor.
    """
    template: str
    system_message: str

    def format(self, query: str, context: str, **kwargs) -> str:
        """
        Format the prompt with query and passage

        Args:
            query: User query
            context: Passage to compress
            **kwargs: Additional template variables

        Returns:
            Formatted prompt string
        """
        return self.template.format(
            query=query,
            context=context,
            no_output=NO_OUTPUT,
            **kwargs
        )

    def to_messages(self, query: str, context: str, **kwargs) -> List[Dict[str, str]]:
        """
        Format as chat messages for chat-based models

        Returns:
            List of message dicts with 'role' and 'content'
        """
        return [
            {"role": "system", "content": self.system_message},
            {"role": "user", "content": self.format(query, context, **kwargs)}
        ]


class PromptTemplateLibrary:
    """Library of compression prompt templates"""

    SYSTEM_EXTRACTION = """You extract information from documents for a search system.

You never add, rephrase or summarise text. You copy the relevant parts of the document exactly as written."""

    EXTRACTION_TEMPLATE = PromptTemplate(
        template="""Given the following question and context, extract any part of the context *AS IS* that is relevant to answer the question. If none of the context is relevant return {no_output}.

Remember, *DO NOT* edit the extracted parts of the context.

> Question: {query}
> Context:
>>>
{context}
>>>
Extracted relevant parts:""",
        system_message=SYSTEM_EXTRACTION
    )

    # Same contract, tighter wording for small local models
    STRICT_EXTRACTION_TEMPLATE = PromptTemplate(
        template="""Question: {query}

Document:
{context}

Copy, word for word, only the sentences of the document that help answer the question.
If no sentence helps, reply with exactly {no_output} and nothing else.

Relevant sentences:""",
        system_message=SYSTEM_EXTRACTION
    )

    @classmethod
    def get_template(cls, prompt_type: Union[PromptType, str]) -> PromptTemplate:
        """
        Get template by type

        Args:
            prompt_type: PromptType or its string value

        Returns:
            PromptTemplate instance
        """
        template_map = {
            PromptType.EXTRACTION: cls.EXTRACTION_TEMPLATE,
            PromptType.STRICT_EXTRACTION: cls.STRICT_EXTRACTION_TEMPLATE,
        }

        return template_map[PromptType(prompt_type)]
