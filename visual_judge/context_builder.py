"""Judge request assembly.

Turns captured evidence, a test contract and a code diff into the instruction
block sent alongside the media parts. Pure string work: empty contract fields
are rendered literally and nothing here raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .contract import TestContext
from .evidence import Evidence, FrameSequence, Video

NO_DIFF_PLACEHOLDER = "No git diff provided."

DEFAULT_SCENE_DESCRIPTION = (
    "You are currently looking at a threeJS application, rendering a 3D scene "
    "as well as an orbit camera and UI elements."
)

_MOVEMENT_RE = re.compile(r"\bmov(e|es|ed|ing|ement)\b|\bshift|\btranslat", re.IGNORECASE)
# An ignore-style instruction aimed at the camera, e.g. "Ignore perspective-induced angle".
_PERSPECTIVE_RE = re.compile(r"\b(ignore|disregard)\b[^.;]*\b(perspective|camera)", re.IGNORECASE)


class Intent(str, Enum):
    MOVEMENT = "movement"
    APPEARANCE = "appearance"


MOVEMENT_NOTE = (
    "The test context describes movement: you MUST consider object position changes. "
    "Estimate the subject's X,Y pixel center in the initial and final state and report "
    "the horizontal and vertical pixel shift in your reasoning."
)
APPEARANCE_NOTE = "Assume object position remains stable; focus on visual appearance changes."

OUTPUT_DIRECTIVE = (
    "Respond with a single JSON object and nothing else: no markdown, no prose before or after.\n"
    "It must have exactly these keys:\n"
    '{ "status": "PASS" | "FAIL", "certainty": <number 0.0-1.0>, "reasoning": "<short factual justification>" }'
)

_PAIR_EXAMPLES = """EXAMPLE 1 (PASS)
[IMAGE 1 "before" shows a blue car in the center]
[IMAGE 2 "after" shows the same blue car on the right]
Test Context: "User presses the 'Nudge Right' button. The selected entity should move to the right."
Git Diff:
```diff
- const newX = selectedEntity.position.x; // BUG: not adding the nudge
+ const newX = selectedEntity.position.x + NUDGE_AMOUNT;
```
AI OUTPUT:
{ "status": "PASS", "certainty": 0.98, "reasoning": "The diff adds NUDGE_AMOUNT to the X position and the after image shows the car moved right, matching the test context." }

EXAMPLE 2 (FAIL)
[IMAGE 1 "before" shows a blue car in the center]
[IMAGE 2 "after" shows the blue car turned red, still in the center]
Test Context: "User presses the 'Nudge Right' button. The selected entity should move to the right."
Git Diff:
```diff
- const newColor = 0x0000FF; // blue
+ const newColor = 0xFF0000; // red
```
AI OUTPUT:
{ "status": "FAIL", "certainty": 1.0, "reasoning": "The test expected the car to move right. It did not move; only its color changed, which matches the diff but not the test context." }"""


@dataclass(frozen=True)
class JudgeRequest:
    evidence: Evidence
    instructions: str
    diff_text: str


def detect_intent(context: TestContext) -> Intent:
    """Keyword heuristic: movement vocabulary in the expectation means MOVEMENT."""
    text = context.expectation or context.render()
    return Intent.MOVEMENT if _MOVEMENT_RE.search(text) else Intent.APPEARANCE


def build(
    evidence: Evidence,
    context: TestContext,
    diff_text: str | None,
    *,
    intent: Intent | None = None,
    scene_description: str = DEFAULT_SCENE_DESCRIPTION,
) -> JudgeRequest:
    resolved_intent = intent or detect_intent(context)
    intent_note = MOVEMENT_NOTE if resolved_intent is Intent.MOVEMENT else APPEARANCE_NOTE
    diff_block = diff_text if diff_text and diff_text.strip() else NO_DIFF_PLACEHOLDER

    if isinstance(evidence, FrameSequence):
        body = _sequence_instructions(evidence, context)
    elif isinstance(evidence, Video):
        body = _video_instructions()
    else:
        body = _pair_instructions(evidence.kind)

    sections = [
        body,
        scene_description,
        intent_note,
        "A git diff of recent code changes is included. It is not guaranteed to be related "
        "to the test, but may provide useful context.",
        OUTPUT_DIRECTIVE,
    ]
    if evidence.kind in {"pair", "single"}:
        sections.append(_PAIR_EXAMPLES)
    sections.append(_task_block(context, diff_block))
    instructions = "\n\n".join(section.strip() for section in sections if section and section.strip())
    return JudgeRequest(evidence=evidence, instructions=instructions, diff_text=diff_text or "")


def _pair_instructions(kind: str) -> str:
    if kind == "single":
        opening = (
            "You are a hyper-focused AI Quality Assurance Analyst. You receive a single screenshot "
            'taken after a user action. Decide whether it shows the state described by the "Test Context".'
        )
    else:
        opening = (
            "You are a hyper-focused AI Quality Assurance Analyst. Your task is to determine if a "
            'specific visual change occurred between a "Before" screenshot (first image) and an '
            '"After" screenshot (second image), based on a "Test Context".'
        )
    return (
        f"{opening}\n\n"
        "Analysis Instructions:\n"
        "1. Identify the Subject from the Test Context.\n"
        "2. Focus ONLY on this subject; ignore noise.\n"
        "3. If movement is expected: estimate the X,Y pixel center before vs after and report them.\n"
        "4. Decide PASS if the change matches the description; else FAIL."
    )


def _sequence_instructions(evidence: FrameSequence, context: TestContext) -> str:
    rules = [
        f"First frame = initial state; last frame = final state; the {max(0, len(evidence.frames) - 2)} "
        "intermediate frames show the progression in order.",
        "Focus ONLY on the Subject.",
    ]
    if any(_PERSPECTIVE_RE.search(caveat) for caveat in context.caveats()):
        rules.append(
            "Ignore apparent rotation or angle changes caused by camera perspective; "
            "the Warnings/Notes say these are artifacts, not behavior."
        )
    rules.extend(
        [
            "Ignore minor lighting flicker, particles and drawer UI elements.",
            "PASS only if the progression matches the Expectation and the Pass condition.",
        ]
    )
    numbered = "\n".join(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1))
    return (
        f"You are a visual QA analyst. You receive an ordered sequence of {len(evidence.frames)} PNG frames "
        "from an interactive scene.\n"
        "Decide PASS or FAIL strictly by the Test Context (Subject / Action / Expectation / Warnings / Pass / Notes).\n\n"
        f"Rules:\n{numbered}"
    )


def _video_instructions() -> str:
    return (
        "You are a visual QA analyst provided with a single video that shows an action over time.\n"
        "Decide PASS or FAIL based only on whether the observed visual change matches the Test Context. "
        "Do not consider errors outside the scope of the test context.\n\n"
        "Instructions:\n"
        "1. Identify the subject named in the Test Context.\n"
        "2. Infer the start and end state from the video.\n"
        "3. PASS if the final visual state matches the expected change; else FAIL.\n"
        "4. Be concise and factual. Do not invent details. Ignore minor lighting, noise points "
        "and UI unrelated to the subject."
    )


def _task_block(context: TestContext, diff_block: str) -> str:
    return (
        "YOUR TASK\n"
        f'Test Context: "{context.render()}"\n'
        "Git Diff:\n"
        f"```diff\n{diff_block}\n```\n"
        "JSON ONLY:"
    )
