import json
import logging
from datetime import date
from typing import Optional

import httpx
from pydantic import ValidationError

from hms_realtime.config import Settings
from hms_realtime.models.health_tip import TipSlot
from hms_realtime.schemas import GeneratedHealthTip

logger = logging.getLogger(__name__)


class HealthTipGenerationError(Exception):
    pass


SYSTEM_PROMPT = (
    "You are a health educator for a multi-speciality hospital in Pune, Maharashtra, India. "
    "Write one short, practical health tip for patients and visitors. "
    "Respond with a JSON object with the keys: title, content, category, "
    "weather_context, season, priority (low, medium or high) and target_audience."
)

# Used when no text-generation endpoint is configured
FALLBACK_TIPS = {
    "summer": [
        ("Stay Hydrated in the Heat", "Drink water regularly even if you are not thirsty and carry ORS when travelling in the afternoon sun.", "hydration"),
        ("Avoid Peak Sun Hours", "Limit outdoor work between 12 PM and 4 PM, wear light cotton clothes and cover your head outdoors.", "heat_safety"),
    ],
    "monsoon": [
        ("Keep Mosquitoes Away", "Empty standing water around your home weekly and use nets or repellents to prevent dengue and malaria.", "infection_prevention"),
        ("Drink Safe Water", "Boil or filter drinking water during the rains to avoid typhoid, jaundice and stomach infections.", "hygiene"),
    ],
    "post_monsoon": [
        ("Watch for Lingering Fevers", "A fever lasting more than two days after the rains needs a check-up. Do not self-medicate with antibiotics.", "infection_prevention"),
        ("Protect Your Lungs", "Air quality drops as the season changes. Wear a mask outdoors if you have asthma or COPD.", "respiratory"),
    ],
    "winter": [
        ("Keep Joints Moving", "Cold mornings stiffen joints. A 20 minute walk after sunrise and gentle stretching keep you mobile.", "fitness"),
        ("Mind Your Blood Pressure", "Blood pressure tends to rise in winter. Check it regularly and keep salt intake low.", "cardiac"),
    ],
}


def season_for(day: date) -> str:
    if 3 <= day.month <= 5:
        return "summer"
    if 6 <= day.month <= 9:
        return "monsoon"
    if 10 <= day.month <= 11:
        return "post_monsoon"
    return "winter"


class HealthTipGenerator:
    """Produces health tip content for a daily slot.

    Calls an OpenAI-compatible chat completion endpoint when an API key is
    configured, otherwise picks a tip from a small seasonal catalogue.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.client = client

    async def generate(self, slot: TipSlot, today: Optional[date] = None) -> GeneratedHealthTip:
        today = today or date.today()
        if not self.settings.ai_api_key:
            return self._fallback_tip(slot, today)
        return await self._generate_remote(slot, today)

    async def _generate_remote(self, slot: TipSlot, today: date) -> GeneratedHealthTip:
        time_of_day = "morning" if slot == TipSlot.MORNING else "evening"
        payload = {
            "model": self.settings.ai_model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Write the {time_of_day} tip for {today.isoformat()} during the {season_for(today)} season."}
            ]
        }
        headers = {"Authorization": f"Bearer {self.settings.ai_api_key}"}
        url = f"{self.settings.ai_base_url.rstrip('/')}/chat/completions"

        try:
            if self.client is not None:
                response = await self.client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.ai_timeout_seconds) as client:
                    response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            return GeneratedHealthTip(**json.loads(content))
        except httpx.HTTPError as e:
            raise HealthTipGenerationError(f"Health tip request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
            raise HealthTipGenerationError(f"Unexpected health tip response: {e}") from e

    @staticmethod
    def _fallback_tip(slot: TipSlot, today: date) -> GeneratedHealthTip:
        season = season_for(today)
        tips = FALLBACK_TIPS[season]
        offset = 0 if slot == TipSlot.MORNING else 1
        title, content, category = tips[(today.toordinal() + offset) % len(tips)]
        return GeneratedHealthTip(
            title=title,
            content=content,
            category=category,
            season=season,
            weather_context=season.replace("_", "-"),
            priority="medium",
            target_audience="all"
        )
