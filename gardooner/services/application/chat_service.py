"""
Chat Service
============

Garden-aware chat on top of the LLM backends.

Persisted conversations (``send_message``) give the model the full garden
context plus the ``<garden_action>`` grammar; any actions it embeds are
executed through the :class:`~gardooner.services.ai.chat_actions.ActionEngine`
and their results stored on the assistant message. The stateless ``send``
path (mobile) focuses on one zone or plant and never executes actions.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

from gardooner.domain.exceptions import NotFoundError, PreconditionError
from gardooner.services.ai.chat_actions import parse_actions
from gardooner.services.ai.prompts import build_chat_system_prompt
from gardooner.services.ai.provider import resolve_provider
from gardooner.services.application.context_builder import (
    care_log_summary,
    garden_summary,
    plant_summary,
    sparse,
)
from gardooner.utils.time import iso_cutoff, iso_now, utc_date, utc_now

if TYPE_CHECKING:
    from gardooner.config import AppConfig
    from gardooner.enums import ProviderName
    from gardooner.services.ai.chat_actions import ActionEngine
    from gardooner.services.ai.provider import AIProvider, ProviderResolution
    from infrastructure.database.repositories import (
        AccountRepository,
        AnalysisRepository,
        ConversationRepository,
        GardenRepository,
        TaskRepository,
    )

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_TITLE = "New conversation"
TITLE_LENGTH = 50


def conversation_title(first_message: str) -> str:
    title = first_message[:TITLE_LENGTH]
    return title + "..." if len(first_message) > TITLE_LENGTH else title


class ChatService:
    """Chat turns, conversation persistence and action execution."""

    def __init__(
        self,
        *,
        gardens: "GardenRepository",
        tasks: "TaskRepository",
        analysis: "AnalysisRepository",
        conversations: "ConversationRepository",
        accounts: "AccountRepository",
        action_engine: "ActionEngine",
        provider_factory: Callable[["ProviderName"], "AIProvider"],
        config: "AppConfig",
    ):
        self._gardens = gardens
        self._tasks = tasks
        self._analysis = analysis
        self._conversations = conversations
        self._accounts = accounts
        self._engine = action_engine
        self._provider_factory = provider_factory
        self._config = config

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------
    def _owned_garden(self, garden_id: str, user_id: str) -> dict[str, Any]:
        garden = self._gardens.get_owned_garden(garden_id, user_id)
        if not garden:
            raise NotFoundError(f"Garden {garden_id} not found")
        return garden

    def _zone_with_plants(self, zone: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": zone["id"],
            "name": zone["name"],
            **sparse(soilType=zone.get("soil_type"), sunExposure=zone.get("sun_exposure")),
            "plants": [plant_summary(plant) for plant in self._gardens.list_plants([zone["id"]])],
        }

    def build_chat_context(
        self,
        garden_id: str,
        user_id: str,
        *,
        zone_id: str | None = None,
        plant_id: str | None = None,
        include_analysis: bool = False,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utc_now()
        garden = self._owned_garden(garden_id, user_id)
        since = iso_cutoff(now, days=self._config.care_log_window_days)
        context: dict[str, Any] = {
            "garden": garden_summary(garden),
            "recentCareLogs": [],
            "currentDate": utc_date(now),
        }

        skill_level = self._accounts.get_skill_level(user_id)
        if skill_level:
            context["userSkillLevel"] = skill_level

        cached = self._analysis.latest_weather(garden_id)
        if cached:
            context["weather"] = {"forecast": cached["forecast"], "fetchedAt": cached["fetched_at"]}

        plant = self._gardens.get_plant(plant_id) if plant_id else None
        focus_zone_id = plant["zone_id"] if plant else zone_id
        zone = self._gardens.get_zone_in_garden(focus_zone_id, garden_id) if focus_zone_id else None

        if plant and zone:
            context["focusPlant"] = {**plant_summary(plant), "zoneName": zone["name"]}
            context["focusZone"] = self._zone_with_plants(zone)
            target_ids = [plant["id"]]
        elif zone:
            context["focusZone"] = self._zone_with_plants(zone)
            target_ids = [zone["id"], *(p["id"] for p in context["focusZone"]["plants"])]
        else:
            zones = [self._zone_with_plants(garden_zone) for garden_zone in self._gardens.list_zones(garden_id)]
            context["zones"] = zones
            target_ids = [z["id"] for z in zones] + [p["id"] for z in zones for p in z["plants"]]

        context["recentCareLogs"] = [care_log_summary(log) for log in self._tasks.recent_care_logs(target_ids, since)]

        if include_analysis:
            zone_names = {z["id"]: z["name"] for z in self._gardens.list_zones(garden_id)}
            context["latestAnalysis"] = [
                {
                    "zoneName": zone_names.get(row["target_id"], "Unknown") if row.get("target_id") else "Garden",
                    "observations": (row.get("result") or {}).get("observations") or [],
                    "alerts": (row.get("result") or {}).get("alerts") or [],
                    "generatedAt": row["generated_at"][:10],
                }
                for row in self._analysis.latest_per_target(garden_id)
                if row.get("result")
            ]
            context["pendingTasks"] = [
                {
                    "id": task["id"],
                    "targetType": task["target_type"],
                    "targetId": task["target_id"],
                    "zoneId": task["zone_id"],
                    "actionType": task["action_type"],
                    "priority": task["priority"],
                    "label": task["label"],
                    "suggestedDate": task["suggested_date"],
                }
                for task in self._tasks.list_pending(garden_id=garden_id)
            ]
        return context

    # ------------------------------------------------------------------
    # Provider
    # ------------------------------------------------------------------
    def _resolve(self, user_id: str) -> tuple["AIProvider", "ProviderResolution"]:
        resolution = resolve_provider(self._accounts, user_id)
        if resolution is None:
            raise PreconditionError("No AI API key configured. Please add a Claude or Kimi API key in settings.")
        return self._provider_factory(resolution.variant), resolution

    # ------------------------------------------------------------------
    # Stateless send
    # ------------------------------------------------------------------
    def send(
        self,
        garden_id: str,
        user_id: str,
        messages: Sequence[Mapping[str, str]],
        *,
        zone_id: str | None = None,
        plant_id: str | None = None,
        image_base64: str | None = None,
    ) -> dict[str, Any]:
        """One chat turn without persistence or action execution."""
        self._owned_garden(garden_id, user_id)
        if plant_id:
            plant = self._gardens.get_plant(plant_id)
            if not plant or not self._gardens.get_zone_in_garden(plant["zone_id"], garden_id):
                raise NotFoundError(f"Plant {plant_id} not found")
        elif zone_id and not self._gardens.get_zone_in_garden(zone_id, garden_id):
            raise NotFoundError(f"Zone {zone_id} not found")

        context = self.build_chat_context(garden_id, user_id, zone_id=zone_id, plant_id=plant_id)
        provider, resolution = self._resolve(user_id)
        reply = provider.chat(
            [{"role": m["role"], "content": m["content"]} for m in messages],
            build_chat_system_prompt(context, include_actions=False),
            resolution.api_key,
            image_base64,
        )
        return {"content": reply.content, "tokensUsed": reply.tokens_used}

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    def list_conversations(self, user_id: str, garden_id: str) -> list[dict[str, Any]]:
        self._owned_garden(garden_id, user_id)
        return [
            {
                "id": row["id"],
                "title": row["title"],
                "messageCount": len(row["messages"]),
                "createdAt": row["created_at"],
                "updatedAt": row["updated_at"],
            }
            for row in self._conversations.list_for_garden(user_id, garden_id)
        ]

    def get_conversation(self, conversation_id: str, user_id: str) -> dict[str, Any]:
        row = self._conversations.get(conversation_id, user_id)
        if not row:
            raise NotFoundError("Conversation not found")
        return {
            "id": row["id"],
            "gardenId": row["garden_id"],
            "title": row["title"],
            "messages": row["messages"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        }

    def create_conversation(self, user_id: str, garden_id: str, title: str | None = None) -> dict[str, Any]:
        self._owned_garden(garden_id, user_id)
        title = title or DEFAULT_CONVERSATION_TITLE
        conversation_id = self._conversations.create(user_id, garden_id, title)
        return {"id": conversation_id, "title": title, "gardenId": garden_id}

    def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        if not self._conversations.delete(conversation_id, user_id):
            raise NotFoundError("Conversation not found")

    def send_message(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        image_base64: str | None = None,
        *,
        image_key: str | None = None,
    ) -> dict[str, Any]:
        """
        Append a user message, ask the model, execute any embedded actions
        and persist both turns. ``image_key`` is kept on the user message as
        ``imageUrl`` so the history still points at the photo.

        Returns ``{"message": <assistant message>, "tokensUsed": {...}}``.
        """
        conversation = self._conversations.get(conversation_id, user_id)
        if not conversation:
            raise NotFoundError("Conversation not found")

        history = list(conversation["messages"])
        title = conversation["title"] if history else conversation_title(content)
        user_message: dict[str, Any] = {"role": "user", "content": content, "timestamp": iso_now()}
        if image_key:
            user_message["imageUrl"] = image_key
        messages = history + [user_message]

        garden_id = conversation["garden_id"]
        context = self.build_chat_context(garden_id, user_id, include_analysis=True)
        provider, resolution = self._resolve(user_id)
        reply = provider.chat(
            [{"role": m["role"], "content": m["content"]} for m in messages],
            build_chat_system_prompt(context, include_actions=True),
            resolution.api_key,
            image_base64,
        )

        clean_text, actions = parse_actions(reply.content)
        results = self._engine.execute_all(garden_id, user_id, actions)
        if results:
            logger.info(
                "Conversation %s executed %d action(s), %d failed",
                conversation_id,
                len(results),
                sum(1 for result in results if not result.ok),
            )

        assistant: dict[str, Any] = {"role": "assistant", "content": clean_text, "timestamp": iso_now()}
        if results:
            assistant["actions"] = [result.to_dict() for result in results]
        messages.append(assistant)

        self._conversations.save_messages(conversation_id, title, messages)
        return {"message": assistant, "tokensUsed": reply.tokens_used}
