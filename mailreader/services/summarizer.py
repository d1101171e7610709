"""
Language-model features built on LangChain + OpenAI chat models.

- summarize_emails: conversational summary suitable for text-to-speech
- polish_draft: rewrite a rough draft in a requested tone
- analyze_emails: infer a structured user profile (JSON)
"""

import logging
import os
from typing import Optional, List, Dict, Any

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser, StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from mailreader.errors import ServiceNotConfigured, UpstreamServiceError
from mailreader.services.text_cleaner import prepare_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4"


class Person(BaseModel):
    name: Optional[str] = Field(None, description="Person's name")
    email: Optional[str] = Field(None, description="Person's email address")


class Contact(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    relationship: Optional[str] = Field(None, description="friend, colleague, family, ...")


class Location(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class Topic(BaseModel):
    topic: str
    frequency: int = 1


class UserProfileInfo(BaseModel):
    """Pydantic model for structured profile extraction."""
    interests: List[str] = Field(default_factory=list, description="Personal interests mentioned")
    hobbies: List[str] = Field(default_factory=list, description="Hobbies mentioned")
    school: Optional[str] = Field(None, description="School name")
    university: Optional[str] = Field(None, description="University name")
    company: Optional[str] = Field(None, description="Employer name")
    jobTitle: Optional[str] = Field(None, description="Job title or role")
    supervisor: Optional[Person] = Field(None, description="Manager or supervisor")
    bestFriend: Optional[Person] = Field(None, description="Most frequently contacted close friend")
    closeContacts: List[Contact] = Field(default_factory=list)
    location: Optional[Location] = None
    frequentTopics: List[Topic] = Field(default_factory=list)
    communicationStyle: Optional[str] = Field(None, description="formal, casual, professional, ...")
    insights: Optional[str] = Field(None, description="Short paragraph of key insights about this person")


SUMMARY_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "You are a helpful assistant that summarizes emails in a natural, "
               "conversational tone suitable for text-to-speech."),
    ("human", """Please provide a concise and natural-sounding summary of the following unread emails.
The summary should be written in a conversational tone, as if you're reading the emails to someone.
Keep it clear, organized, and easy to understand. If there are multiple emails, mention how many
there are and summarize the key points from each.

Emails:
{email_text}

Summary:""")
])

POLISH_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "You are an expert email editor. Rewrite the following draft to be clear, concise, "
               "and {tone}. Maintain the original intent but improve grammar, flow, and "
               "professionalism. Output ONLY the rewritten email body."),
    ("human", "{draft}")
])

ANALYSIS_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """You are an expert at analyzing emails to extract personal insights.
Only include information that is clearly mentioned or can be reasonably inferred.
Use null for fields where information is not available.
Return ONLY valid JSON matching this schema: {format_instructions}"""),
    ("human", """Analyze the following emails to extract insights about the user: interests and hobbies,
education, work (company, job title, supervisor), relationships (best friend, close contacts),
location, frequent topics and communication style.

Emails:
{email_text}

Analysis (JSON only):""")
])


def _get_llm(temperature: float, max_tokens: Optional[int] = None) -> ChatOpenAI:
    """Get configured OpenAI chat model."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ServiceNotConfigured("OpenAI API key not configured")

    return ChatOpenAI(
        model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
    )


def format_emails_for_prompt(emails: List[Dict[str, Any]]) -> str:
    """
    Render emails as numbered blocks for a prompt.

    Uses the snippet when present, otherwise the cleaned body.
    """
    blocks = []
    for index, email in enumerate(emails, start=1):
        content = email.get("snippet") or prepare_for_prompt(email.get("body", ""))
        blocks.append(
            f"Email {index}:\n"
            f"From: {email.get('from', '')}\n"
            f"Subject: {email.get('subject', '')}\n"
            f"Date: {email.get('date', '')}\n"
            f"Content: {content}\n"
            f"---"
        )
    return "\n\n".join(blocks)


def summarize_emails(emails: List[Dict[str, Any]]) -> str:
    """Summarize emails for reading aloud."""
    chain = SUMMARY_PROMPT | _get_llm(temperature=0.7, max_tokens=1000) | StrOutputParser()
    try:
        return chain.invoke({"email_text": format_emails_for_prompt(emails)}).strip()
    except Exception as e:
        logger.error("Error summarizing emails", exc_info=True)
        raise UpstreamServiceError(f"Failed to summarize emails: {e}") from e


def polish_draft(draft: str, tone: str = "professional") -> str:
    """Rewrite a draft email body in the given tone."""
    chain = POLISH_PROMPT | _get_llm(temperature=0.7) | StrOutputParser()
    try:
        return chain.invoke({"draft": draft, "tone": tone}).strip()
    except Exception as e:
        logger.error("Error polishing email", exc_info=True)
        raise UpstreamServiceError(f"Failed to polish email: {e}") from e


def _person(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict) and value.get("name"):
        return {"name": value["name"], "email": value.get("email") or None}
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def normalize_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce raw model output into the UserAnalysis column shape.

    Tolerates missing keys and wrong types; anything unusable becomes
    None or an empty list.
    """
    location = data.get("location")
    if isinstance(location, dict) and (location.get("city") or location.get("country")):
        location = {
            "city": location.get("city") or None,
            "state": location.get("state") or None,
            "country": location.get("country") or None,
        }
    else:
        location = None

    contacts = []
    for contact in data.get("closeContacts") or []:
        if isinstance(contact, dict):
            contacts.append({
                "name": contact.get("name") or "",
                "email": contact.get("email") or None,
                "relationship": contact.get("relationship") or "unknown",
            })

    topics = []
    for topic in data.get("frequentTopics") or []:
        if isinstance(topic, dict):
            frequency = topic.get("frequency")
            topics.append({
                "topic": topic.get("topic") or "",
                "frequency": frequency if isinstance(frequency, int) else 1,
            })
        elif topic:
            topics.append({"topic": str(topic), "frequency": 1})

    return {
        "interests": _string_list(data.get("interests")),
        "hobbies": _string_list(data.get("hobbies")),
        "school": data.get("school") or None,
        "university": data.get("university") or None,
        "company": data.get("company") or None,
        "job_title": data.get("jobTitle") or None,
        "supervisor": _person(data.get("supervisor")),
        "best_friend": _person(data.get("bestFriend")),
        "close_contacts": contacts,
        "location": location,
        "frequent_topics": topics,
        "communication_style": data.get("communicationStyle") or None,
        "insights": data.get("insights") or "",
    }


def analyze_emails(emails: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Infer a user profile from emails.

    Returns:
        Normalized profile dict (see normalize_profile)
    """
    parser = JsonOutputParser(pydantic_object=UserProfileInfo)
    chain = ANALYSIS_PROMPT | _get_llm(temperature=0.3, max_tokens=2000) | parser

    try:
        raw = chain.invoke({
            "email_text": format_emails_for_prompt(emails),
            "format_instructions": parser.get_format_instructions()
        })
    except OutputParserException as e:
        logger.error("AI returned invalid JSON for analysis: %s", e)
        raise UpstreamServiceError("Failed to parse analysis results") from e
    except Exception as e:
        logger.error("Error analyzing emails", exc_info=True)
        raise UpstreamServiceError(f"Failed to analyze emails with AI: {e}") from e

    if not isinstance(raw, dict):
        raise UpstreamServiceError("Failed to parse analysis results")

    return normalize_profile(raw)
