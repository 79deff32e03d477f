import asyncio
import json
import logging
from typing import Any, Dict, List, Literal, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.fleet_journal.classification.exceptions import AdapterException
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    JournalPolicy,
    ReviewState,
    SuggestionSource,
)
from src.fleet_journal.config import Settings
from src.fleet_journal.journal.schemas import JournalEntry, TripType

logger = logging.getLogger(__name__)

HISTORY_PROMPT_LIMIT = 10

RESPONSE_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "tripType": {"type": "string", "enum": ["tjänst", "privat"]},
        "purpose": {"type": ["string", "null"]},
        "projectCode": {"type": ["string", "null"]},
        "customer": {"type": ["string", "null"]},
        "confidence": {"type": "number"},
        "reasoning": {"type": "string"},
    },
    "required": ["tripType", "confidence", "reasoning"],
}


class LLMServerException(Exception):
    pass


class LLMClient:
    """Invokes the language model behind a JSON-in, JSON-out HTTP endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        model: str = "",
        timeout_seconds: float = 60.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_url=settings.LLM_API_URL,
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (LLMServerException, aiohttp.ClientConnectionError)
        ),
        reraise=True,
    )
    async def invoke(
        self,
        prompt: str,
        response_json_schema: Dict[str, Any],
        file_urls: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "response_json_schema": response_json_schema,
            "file_urls": file_urls or [],
        }
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(
                self.api_url, json=payload, headers=headers
            ) as response:
                if response.status >= 500:
                    raise LLMServerException(f"LLM returned {response.status}")
                if response.status != 200:
                    raise AdapterException(
                        details=f"LLM returned {response.status}"
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise AdapterException(details=f"Reply is not JSON: {e}")

        # Some gateways wrap the object, some return it as a JSON string
        if isinstance(data, dict) and "response" in data:
            data = data["response"]
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise AdapterException(details=f"Reply is not JSON: {e}")
        if not isinstance(data, dict):
            raise AdapterException(details=f"Unexpected reply type {type(data)}")
        return data


class AISuggestionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    trip_type: Literal["tjänst", "privat"] = Field(..., alias="tripType")
    purpose: Optional[str] = None
    project_code: Optional[str] = Field(None, alias="projectCode")
    customer: Optional[str] = None
    confidence: float = 0.0
    reasoning: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        if v is None:
            return 0.0
        return min(max(float(v), 0.0), 100.0)

    @field_validator("purpose", "project_code", "customer", mode="before")
    @classmethod
    def blank_is_unknown(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        if not text or text.lower() == "null":
            return None
        return text


def _describe_policy(policy: Optional[JournalPolicy]) -> List[str]:
    lines = []
    if policy and policy.work_hours_start and policy.work_hours_end:
        days = ", ".join(str(d) for d in policy.work_days or [])
        lines.append(
            f"Arbetstider: {policy.work_hours_start}-{policy.work_hours_end}, "
            f"dagar: {days}"
        )
    else:
        lines.append("Arbetstider ej definierade")
    offices = [o.name for o in (policy.office_locations if policy else []) if o.name]
    if offices:
        lines.append(f"Kontor: {', '.join(offices)}")
    else:
        lines.append("Inga kontor definierade")
    return lines


def _address(location) -> str:
    return location.address if location and location.address else "Okänd"


def build_prompt(
    entry: JournalEntry,
    history: List[JournalEntry],
    policy: Optional[JournalPolicy] = None,
) -> str:
    patterns = [
        f"- Syfte: {h.purpose or 'Ej angivet'}, "
        f"Projekt: {h.project_code or 'Ej angivet'}, "
        f"Kund: {h.customer or 'Ej angivet'}, "
        f"Plats: {_address(h.start_location)} → {_address(h.end_location)}, "
        f"Sträcka: {h.distance_km}km"
        for h in history[:HISTORY_PROMPT_LIMIT]
    ]
    sections = [
        "Du är en AI-assistent som hjälper till att klassificera körjournalsposter.",
        "",
        "KONTEXT:",
        *_describe_policy(policy),
        "",
        "HISTORISKA TJÄNSTERESOR (för mönsterigenkänning):",
        *(patterns or ["Inga tidigare tjänsteresor"]),
        "",
        "RESA ATT ANALYSERA:",
        f"- Starttid: {entry.start_time.isoformat()}",
        f"- Sluttid: {entry.end_time.isoformat() if entry.end_time else 'Okänd'}",
        f"- Startplats: {_address(entry.start_location)}",
        f"- Slutplats: {_address(entry.end_location)}",
        f"- Sträcka: {entry.distance_km}km",
        f"- Varaktighet: {entry.duration_minutes} minuter",
        "",
        "Analysera resan och ge förslag på:",
        "1. Typ (tjänst eller privat) - tjänst om det är under arbetstid, till "
        "kända arbetsplatser/kunder, eller matchar historiska mönster",
        "2. Syfte (om tjänsteresa)",
        "3. Projektkod (om det finns liknande i historiken)",
        "4. Kund (om det finns liknande i historiken)",
        "5. Konfidensgrad (0-100%) för klassificeringen",
        "",
        "Svara ENDAST med JSON enligt det angivna schemat.",
    ]
    return "\n".join(sections)


class AISuggestionAdapter:
    def __init__(self, llm: LLMClient, policy: Optional[JournalPolicy] = None):
        self.llm = llm
        self.policy = policy

    async def suggest(
        self, entry: JournalEntry, history: List[JournalEntry]
    ) -> ClassificationSuggestion:
        """Ask the model for a classification; any failure raises AdapterException."""
        prompt = build_prompt(entry, history, self.policy)
        try:
            raw = await self.llm.invoke(prompt, RESPONSE_JSON_SCHEMA)
            reply = AISuggestionResponse.model_validate(raw)
        except AdapterException as e:
            logger.error(f"AI suggestion failed for entry {entry.id}: {e}")
            raise AdapterException(entry.id, e.details) from e
        except ValidationError as e:
            logger.error(f"AI reply for entry {entry.id} did not validate: {e}")
            raise AdapterException(entry.id, "Invalid reply") from e
        except ValueError as e:
            logger.error(f"AI reply for entry {entry.id} was unreadable: {e}")
            raise AdapterException(entry.id, "Unreadable reply") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, LLMServerException) as e:
            logger.error(f"AI service unavailable for entry {entry.id}: {e}")
            raise AdapterException(entry.id, str(e)) from e

        business = reply.trip_type == TripType.BUSINESS.value
        return ClassificationSuggestion(
            entry_id=entry.id,
            trip_type=TripType(reply.trip_type),
            purpose=reply.purpose if business else None,
            project_code=reply.project_code if business else None,
            customer=reply.customer if business else None,
            confidence=reply.confidence,
            reasoning=reply.reasoning,
            source=SuggestionSource.AI,
            state=ReviewState.SUGGESTED,
        )
