import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from django.conf import settings

from . import api_keys, storyboards, work_queue
from .exceptions import StoryboardError, StoryValidationError
from .llm_query import query_openrouter
from .models import Storyboard
from .processor import ProcessingResult, get_processor
from .utils import estimate_storyboard_cost

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 10
MAX_PROMPT_LENGTH = 2000

SYSTEM_PROMPT = """You are an expert AI Director and Cinematographer. Your task is to take a user's high-level concept and transform it into a structured storyboard plan.

Your workflow is:
1.  Define the consistent "story anchor content" (characters, setting, style).
2.  Create a 3-5 scene narrative, writing a unique "scene action" for each scene.

Your final output MUST be a single, valid JSON object following the structure below. Do not include any other text or explanations.

**JSON OUTPUT STRUCTURE:**
{
  "title": "A concise, cinematic title for the story",
  "logline": "A one-sentence summary of the story arc.",
  "story_anchor_content": "A complete text block starting with '--SCENE CONTENT--' that defines the consistent characters, setting, and style reference for the entire story.",
  "scenes": [
    {
      "scene_number": 1,
      "scene_description": "A brief, one-sentence description of the action in this scene.",
      "scene_action": "A complete text block starting with '--SCENE ACTION--' that describes the specific composition, action, and lighting for this single frame."
    }
  ]
}"""

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass
class StoryStructure:
    title: str
    logline: str
    story_anchor_content: str
    scenes: list


@dataclass
class SubmissionResult:
    storyboard: Storyboard
    byok: bool
    queue_job_id: Optional[int] = None
    queue_position: Optional[int] = None
    processing: Optional[ProcessingResult] = None
    error: Optional[str] = None


def validate_prompt(prompt):
    if not prompt or not isinstance(prompt, str):
        raise StoryValidationError("Invalid prompt provided")
    if len(prompt) < MIN_PROMPT_LENGTH:
        raise StoryValidationError(f"Prompt too short. Please provide at least {MIN_PROMPT_LENGTH} characters.")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise StoryValidationError(f"Prompt too long. Please keep it under {MAX_PROMPT_LENGTH} characters.")


def parse_story_response(text) -> StoryStructure:
    match = JSON_BLOCK.search(text or "")
    if not match:
        raise StoryValidationError("Invalid JSON response: No valid JSON found in response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise StoryValidationError(f"Invalid JSON response: {e}") from e

    if not isinstance(data, dict):
        raise StoryValidationError("Invalid response structure: expected a JSON object")
    if not data.get("title") or not data.get("logline") or not data.get("story_anchor_content") \
            or not isinstance(data.get("scenes"), list):
        raise StoryValidationError("Invalid response structure: missing required fields")

    scenes = []
    for scene in data["scenes"]:
        if not isinstance(scene, dict) \
                or not isinstance(scene.get("scene_number"), int) or isinstance(scene.get("scene_number"), bool) \
                or not isinstance(scene.get("scene_description"), str) \
                or not isinstance(scene.get("scene_action"), str):
            raise StoryValidationError("Invalid scene structure")
        scenes.append({
            "scene_number": scene["scene_number"],
            "description": scene["scene_description"],
            "action": scene["scene_action"],
        })

    if not scenes:
        raise StoryValidationError("Invalid response structure: story has no scenes")
    numbers = [s["scene_number"] for s in scenes]
    if sorted(numbers) != list(range(1, len(numbers) + 1)):
        raise StoryValidationError("Invalid scene structure: scene numbers must run 1..N without gaps")

    return StoryStructure(
        title=data["title"],
        logline=data["logline"],
        story_anchor_content=data["story_anchor_content"],
        scenes=scenes,
    )


def generate_story_structure(prompt, query=None) -> StoryStructure:
    validate_prompt(prompt)
    query = query or query_openrouter
    text = query(f"{SYSTEM_PROMPT}\n\nUSER PROMPT: {prompt}", settings.STORY_MODEL)
    story = parse_story_response(text)
    logger.info(f"📝 Story generated: {story.title} with {len(story.scenes)} scenes")
    return story


def create_storyboard_from_prompt(prompt, user_id, query=None, processor=None) -> SubmissionResult:
    """
    Generate the story, persist it with pending scenes and route it.

    BYOK users are processed right away under their own key and get a
    terminal result back; everyone else is appended to the shared queue.
    """
    story = generate_story_structure(prompt, query=query)

    storyboard = storyboards.create_storyboard(
        user_id=user_id,
        title=story.title,
        logline=story.logline,
        original_prompt=prompt,
        story_anchor_content=story.story_anchor_content,
        scenes=story.scenes,
        estimated_cost=estimate_storyboard_cost(len(story.scenes)),
    )

    if api_keys.should_use_byok(user_id):
        logger.info(f"🔑 User {user_id} using BYOK - processing immediately")
        processor = processor or get_processor()
        result = SubmissionResult(storyboard=storyboard, byok=True)
        try:
            result.processing = processor.process_with_user_key(storyboard.pk, user_id)
        except StoryboardError as e:
            result.error = str(e)
        storyboard.refresh_from_db()
        return result

    logger.info(f"➡️  User {user_id} using shared key - adding to queue")
    job_id = work_queue.enqueue(storyboard.pk, user_id)
    status = work_queue.get_status_for(storyboard.pk)
    return SubmissionResult(
        storyboard=storyboard,
        byok=False,
        queue_job_id=job_id,
        queue_position=status.position if status else None,
    )
