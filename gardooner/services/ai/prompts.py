"""
System prompts shared by every backend.

``build_analysis_system_prompt`` renders a zone context (see
:func:`gardooner.services.application.context_builder.build_zone_context`)
and the JSON contract the model must answer with. ``build_chat_system_prompt``
renders the garden chat context and, for persisted conversations, the
``<garden_action>`` mini-grammar.
"""

from __future__ import annotations

import json
from typing import Any

_ANALYSIS_OUTPUT_FORMAT = """\
```
{
  "operations": [
    {
      "op": "create",
      "targetType": "zone" | "plant",           // what the task applies to
      "targetId": "<uuid>",                     // the zone or plant id
      "zoneId": "<uuid>",                       // always the id of this zone
      "actionType": "water" | "fertilize" | "harvest" | "prune" | "plant" | "monitor" | "protect" | "other",
      "priority": "urgent" | "today" | "upcoming" | "informational",
      "label": "Short human-readable label (max 60 chars)",
      "suggestedDate": "YYYY-MM-DD",
      "context": "Brief explanation (max 200 chars, optional)",
      "recurrence": "optional hint, e.g. every 3 days",
      "photoRequested": true | false            // optional, ask the gardener for a photo
    },
    { "op": "update", "taskId": "<uuid>", ...any create field except targets... },
    { "op": "complete", "taskId": "<uuid>", "reason": "why it is done (max 200 chars, optional)" },
    { "op": "cancel", "taskId": "<uuid>", "reason": "why it is no longer needed (optional)" }
  ],
  "observations": ["Free-text observations about the zone (optional)"],
  "alerts": ["Urgent warnings that need attention (optional)"]
}
```"""

_ACTION_EXAMPLES = (
    (
        "Create Task",
        '<garden_action type="create_task">{"targetType":"zone|plant","targetId":"<uuid>","zoneId":"<uuid>",'
        '"actionType":"water|fertilize|harvest|prune|plant|monitor|protect|other",'
        '"priority":"urgent|today|upcoming|informational","label":"Short label (max 60 chars)",'
        '"suggestedDate":"YYYY-MM-DD"}</garden_action>',
    ),
    (
        "Complete Task",
        '<garden_action type="complete_task">{"taskId":"<uuid>","reason":"optional reason"}</garden_action>',
    ),
    (
        "Cancel Task",
        '<garden_action type="cancel_task">{"taskId":"<uuid>","reason":"optional reason"}</garden_action>',
    ),
    (
        "Log Care Activity",
        '<garden_action type="create_care_log">{"targetType":"zone|plant","targetId":"<uuid>",'
        '"actionType":"water|fertilize|harvest|prune|plant|monitor|protect|other","notes":"optional notes"}'
        "</garden_action>",
    ),
)


def _garden_lines(garden: dict[str, Any], current_date: str, skill_level: str | None) -> list[str]:
    lines = [f"Garden name: {garden['name']}"]
    if garden.get("hardinessZone"):
        lines.append(f"USDA hardiness zone: {garden['hardinessZone']}")
    location = garden.get("location")
    if location:
        lines.append(f"Location: {location['lat']}, {location['lng']}")
    lines.append(f"Current date: {current_date}")
    if skill_level:
        lines.append(f"Gardener skill level: {skill_level} (adjust advice complexity accordingly)")
    return lines


def _plant_lines(plant: dict[str, Any], *, brief: bool = False) -> list[str]:
    lines = [f"- **{plant['name']}** (ID: {plant['id']})"]
    if plant.get("variety"):
        lines.append(f"  Variety: {plant['variety']}")
    if not brief and plant.get("datePlanted"):
        lines.append(f"  Planted: {plant['datePlanted']}")
    if plant.get("growthStage"):
        lines.append(f"  Growth stage: {plant['growthStage']}")
    if not brief and plant.get("careProfile"):
        lines.append(f"  Care profile: {json.dumps(plant['careProfile'])}")
    return lines


def _care_log_line(log: dict[str, Any]) -> str:
    suffix = f" - {log['notes']}" if log.get("notes") else ""
    return f"- {log['actionType']} on target {log['targetId']} at {log['loggedAt']}{suffix}"


def build_analysis_system_prompt(context: dict[str, Any]) -> str:
    zone = context["zone"]
    lines: list[str] = [
        "You are an expert garden advisor with deep knowledge of horticulture, plant biology, and seasonal care.",
        "Your job is to review a specific garden zone and keep its task list accurate: create the tasks it needs, "
        "update or close the ones that exist.",
        "",
        "## Output Format",
        "",
        "Respond ONLY with a JSON object matching this schema (no extra text, no markdown fences):",
        _ANALYSIS_OUTPUT_FORMAT,
        "",
        "## Garden Context",
        "",
        *_garden_lines(context["garden"], context["currentDate"], context.get("userSkillLevel")),
        "",
        "## Zone Details",
        "",
        f"Zone ID: {zone['id']}",
        f"Zone name: {zone['name']}",
    ]
    for key, label in (
        ("zoneType", "Zone type"),
        ("dimensions", "Dimensions"),
        ("soilType", "Soil type"),
        ("sunExposure", "Sun exposure"),
        ("notes", "Notes"),
    ):
        if zone.get(key):
            lines.append(f"{label}: {zone[key]}")

    if zone.get("plants"):
        lines += ["", "## Plants in this zone", ""]
        for plant in zone["plants"]:
            lines += _plant_lines(plant)

    if zone.get("recentCareLogs"):
        lines += ["", "## Recent care logs", ""]
        lines += [_care_log_line(log) for log in zone["recentCareLogs"]]

    if zone.get("sensorReadings"):
        lines += ["", "## Sensor readings", ""]
        for reading in zone["sensorReadings"]:
            lines.append(
                f"- {reading['sensorType']}: {reading['value']} {reading['unit']} (at {reading['recordedAt']})"
            )

    if context.get("existingTasks"):
        lines += ["", "## Existing tasks", ""]
        for task in context["existingTasks"]:
            line = (
                f"- Task {task['id']} [{task['status']}]: [{task['actionType']}] \"{task['label']}\" "
                f"for {task['targetType']} {task['targetId']}, priority {task['priority']}, due {task['suggestedDate']}"
            )
            if task.get("completedVia"):
                line += f", closed via {task['completedVia']}"
            lines.append(line)
            if task.get("context"):
                lines.append(f"  Context: {task['context']}")

    weather = context.get("weather")
    if weather:
        lines += ["", "## Weather", ""]
        lines.append(f"Current conditions: {json.dumps(weather.get('current'))}")
        if weather.get("forecast"):
            lines.append(f"Forecast: {json.dumps(weather['forecast'])}")

    photos = context.get("photos")
    if photos:
        lines += [
            "",
            "## Attached Photos",
            "",
            f"{len(photos)} photo(s) are attached to this analysis request. Each photo has a description:",
        ]
        lines += [f"- {photo['description']}" for photo in photos]
        lines.append(
            "Examine the photos carefully for visible plant health issues, pests, disease symptoms, "
            "growth progress, or any other relevant observations."
        )

    lines += [
        "",
        "## Instructions",
        "",
        "1. Analyze the zone holistically: consider plant needs, recent care, sensor data, and weather.",
        "2. Review the existing tasks first. Do not create a task that duplicates a pending one; "
        "update it instead. Complete tasks the care logs show were done, cancel tasks that no longer apply.",
        "3. Only reference task ids listed above and plant or zone ids from this zone.",
        "4. Prioritize: 'urgent' means within 24 hours, 'today' means do it today, "
        "'upcoming' within a week, 'informational' is FYI.",
        "5. Include observations about overall zone health and any alerts for problems "
        "(pest, disease, frost, drought).",
        "6. If photos are attached, analyze them for visible issues like wilting, discoloration, pests, "
        "or disease symptoms.",
    ]
    return "\n".join(lines)


def build_chat_system_prompt(context: dict[str, Any], include_actions: bool) -> str:
    lines: list[str] = [
        "You are Gardooner, an expert garden advisor helping with a specific garden. "
        "Provide practical, specific advice based on the garden's actual plants, conditions, and care history. "
        "Be conversational but precise. Reference actual plant names and conditions when relevant.",
        "",
        "## Garden",
        *_garden_lines(context["garden"], context["currentDate"], context.get("userSkillLevel")),
    ]

    plant = context.get("focusPlant")
    if plant:
        lines += ["", "## Focus Plant", f"Name: {plant['name']} (ID: {plant['id']})", f"Zone: {plant['zoneName']}"]
        lines += [line.strip() for line in _plant_lines(plant)[1:]]

    zone = context.get("focusZone")
    if zone:
        lines += ["", "## Focus Zone", f"Name: {zone['name']} (ID: {zone['id']})"]
        if zone.get("soilType"):
            lines.append(f"Soil type: {zone['soilType']}")
        if zone.get("sunExposure"):
            lines.append(f"Sun exposure: {zone['sunExposure']}")
        if zone.get("plants"):
            lines += ["", "### Plants in this zone"]
            for zone_plant in zone["plants"]:
                lines += _plant_lines(zone_plant)

    if context.get("zones"):
        lines += ["", "## Zones & Plants"]
        for garden_zone in context["zones"]:
            lines += ["", f"### {garden_zone['name']} (ID: {garden_zone['id']})"]
            if garden_zone.get("soilType"):
                lines.append(f"Soil: {garden_zone['soilType']}")
            if garden_zone.get("sunExposure"):
                lines.append(f"Sun: {garden_zone['sunExposure']}")
            for zone_plant in garden_zone.get("plants", []):
                lines += _plant_lines(zone_plant, brief=True)

    if context.get("recentCareLogs"):
        lines += ["", "## Recent Care History (last 14 days)"]
        lines += [_care_log_line(log) for log in context["recentCareLogs"]]

    weather = context.get("weather")
    if weather:
        lines += ["", "## Weather", f"Data fetched: {weather['fetchedAt']}", f"Forecast: {json.dumps(weather['forecast'])}"]

    if context.get("latestAnalysis"):
        lines += ["", "## Latest Analysis Results"]
        for analysis in context["latestAnalysis"]:
            lines += ["", f"### {analysis['zoneName']} ({analysis['generatedAt']})"]
            if analysis["observations"]:
                lines.append("Observations:")
                lines += [f"- {item}" for item in analysis["observations"]]
            if analysis["alerts"]:
                lines.append("Alerts:")
                lines += [f"- {item}" for item in analysis["alerts"]]

    if context.get("pendingTasks"):
        lines += ["", "## Current Pending Tasks"]
        for task in context["pendingTasks"]:
            lines.append(
                f"- Task {task['id']}: [{task['actionType']}] \"{task['label']}\" for {task['targetType']} "
                f"(zone {task['zoneId']}), Priority: {task['priority']}, Due: {task['suggestedDate']}"
            )

    if include_actions:
        lines += [
            "",
            "## Action Capabilities",
            "You can perform actions in the garden by embedding action tags in your response.",
            "ONLY use actions when the user explicitly asks you to create tasks, complete tasks, "
            "cancel tasks, or log care activities.",
        ]
        for title, example in _ACTION_EXAMPLES:
            lines += ["", f"### {title}", "```", example, "```"]
        lines += [
            "",
            "Guidelines:",
            "- ONLY use actions when the user explicitly requests them",
            "- Always confirm what you're doing when executing an action",
            "- Use real IDs from the garden context above",
            "- For create_task, zoneId is always required (use the plant's zone if targeting a plant)",
        ]

    lines += [
        "",
        "## Instructions",
        "Be specific to this garden. Reference actual plants and current conditions.",
        "If photos are attached, analyze them for visible issues like wilting, discoloration, pests, "
        "or disease symptoms.",
        "Format your responses using Markdown for readability: use **bold** for emphasis, bullet lists for "
        "multiple items, and headings (###) to organize longer answers. Keep short replies conversational.",
    ]
    return "\n".join(lines)
