import base64
import json
import logging
import os
import re
import time

from google import genai
from google.genai import types

from core.errors import ProviderError
from core.provider import ContentProvider, ProviderTurn, ToolCall, ToolSession

VIDEO_POLL_ATTEMPTS = int(os.environ.get("VIDEO_POLL_ATTEMPTS", "30"))
VIDEO_POLL_SECONDS = float(os.environ.get("VIDEO_POLL_SECONDS", "5"))

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _parse_json(text):
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    if not cleaned:
        raise ProviderError("Empty response from Gemini")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(f"Malformed JSON from Gemini: {e}", cause=e)


def _to_schema(schema):
    """Convert a lower-case JSON schema dict into a google-genai Schema."""
    kwargs = {"type": str(schema.get("type", "string")).upper()}
    if schema.get("description"):
        kwargs["description"] = schema["description"]
    if schema.get("enum"):
        kwargs["enum"] = list(schema["enum"])
    if "properties" in schema:
        kwargs["properties"] = {k: _to_schema(v) for k, v in schema["properties"].items()}
    if "items" in schema:
        kwargs["items"] = _to_schema(schema["items"])
    if schema.get("required"):
        kwargs["required"] = list(schema["required"])
    return types.Schema(**kwargs)


class GeminiToolSession(ToolSession):
    def __init__(self, chat):
        self._chat = chat

    def send_message(self, text):
        return self._send(text)

    def send_tool_results(self, results):
        parts = [
            types.Part(
                function_response=types.FunctionResponse(
                    id=r.call.id, name=r.call.name, response=r.response
                )
            )
            for r in results
        ]
        return self._send(parts)

    def _send(self, message):
        try:
            response = self._chat.send_message(message)
        except Exception as e:
            logging.error(f"Gemini chat turn error: {e}")
            raise ProviderError(f"Gemini chat turn failed: {e}", cause=e)

        calls = [
            ToolCall(name=fc.name or "", args=dict(fc.args or {}), id=fc.id)
            for fc in (response.function_calls or [])
        ]
        text = "" if calls else (response.text or "")
        return ProviderTurn(tool_calls=calls, text=text)


class GeminiService(ContentProvider):
    def __init__(self, api_key=None):
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self.text_model = os.environ.get("GEMINI_TEXT_MODEL", "gemini-2.5-flash")
        self.pro_model = os.environ.get("GEMINI_PRO_MODEL", "gemini-2.5-pro")
        self.image_model = os.environ.get("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
        self.video_model = os.environ.get("GEMINI_VIDEO_MODEL", "veo-3.0-fast-generate-001")
        self.client = None
        if not self.api_key:
            logging.warning("GEMINI_API_KEY missing. Campaigns and website analysis run degraded.")
            return
        try:
            self.client = genai.Client(api_key=self.api_key)
            logging.info("Gemini service initialized successfully")
        except Exception as e:
            logging.warning("Gemini client failed to initialize: %s", e)

    def _require_client(self):
        if not self.client:
            raise ProviderError("Gemini unavailable (no API key).")
        return self.client

    def generate_structured(self, prompt, schema, use_search=False):
        """Schema-constrained generation; search-grounded calls ask for JSON in the prompt instead."""
        client = self._require_client()
        if use_search:
            # Search grounding and response_schema cannot be combined on one call.
            config = types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
                temperature=0.3,
            )
            contents = f"{prompt}\n\nRespond with JSON only, matching this schema:\n{json.dumps(schema)}"
        else:
            config = types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_to_schema(schema),
                temperature=0.3,
            )
            contents = prompt
        try:
            response = client.models.generate_content(model=self.pro_model, contents=contents, config=config)
        except Exception as e:
            logging.error(f"Gemini structured generation error: {e}")
            raise ProviderError(f"Gemini structured generation failed: {e}", cause=e)
        return _parse_json(response.text)

    def generate_text(self, prompt, long_form=False):
        """Fast copy on the flash model; long form uses the pro model with a thinking budget."""
        client = self._require_client()
        if long_form:
            model = self.pro_model
            config = types.GenerateContentConfig(
                thinking_config=types.ThinkingConfig(thinking_budget=4096),
                temperature=0.7,
            )
        else:
            model = self.text_model
            config = types.GenerateContentConfig(temperature=0.7, max_output_tokens=1500)
        try:
            response = client.models.generate_content(model=model, contents=prompt, config=config)
        except Exception as e:
            logging.error(f"Gemini text generation error: {e}")
            raise ProviderError(f"Gemini text generation failed: {e}", cause=e)
        if not response.text:
            raise ProviderError("Empty response from Gemini")
        return response.text

    def generate_image(self, prompt, size="1K"):
        client = self._require_client()
        try:
            response = client.models.generate_content(
                model=self.image_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE"],
                    image_config=types.ImageConfig(aspect_ratio="16:9", image_size=size),
                ),
            )
        except Exception as e:
            logging.error(f"Gemini image generation error: {e}")
            raise ProviderError(f"Gemini image generation failed: {e}", cause=e)

        for candidate in response.candidates or []:
            for part in (candidate.content.parts if candidate.content else None) or []:
                if part.inline_data and part.inline_data.data:
                    mime = part.inline_data.mime_type or "image/png"
                    encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                    return f"data:{mime};base64,{encoded}"
        raise ProviderError("Gemini returned no image data")

    def generate_video(self, prompt):
        client = self._require_client()
        try:
            operation = client.models.generate_videos(
                model=self.video_model,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    aspect_ratio="16:9",
                    resolution="720p",
                ),
            )
            attempts = 0
            while not operation.done and attempts < VIDEO_POLL_ATTEMPTS:
                time.sleep(VIDEO_POLL_SECONDS)
                operation = client.operations.get(operation)
                attempts += 1
        except Exception as e:
            logging.error(f"Gemini video generation error: {e}")
            raise ProviderError(f"Gemini video generation failed: {e}", cause=e)

        if not operation.done:
            raise ProviderError("Gemini video generation timed out")
        videos = (operation.response.generated_videos if operation.response else None) or []
        if not videos or not videos[0].video or not videos[0].video.uri:
            raise ProviderError("Gemini returned no video")
        return videos[0].video.uri

    def start_tool_session(self, system_prompt, tools):
        client = self._require_client()
        declarations = [
            types.FunctionDeclaration(
                name=t["name"],
                description=t.get("description", ""),
                parameters=_to_schema(t["parameters"]) if t.get("parameters", {}).get("properties") else None,
            )
            for t in tools
        ]
        try:
            chat = client.chats.create(
                model=self.pro_model,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    tools=[types.Tool(function_declarations=declarations)],
                    temperature=0.7,
                ),
            )
        except Exception as e:
            logging.error(f"Gemini chat session error: {e}")
            raise ProviderError(f"Gemini chat session failed: {e}", cause=e)
        return GeminiToolSession(chat)

    def chat(self, history, message):
        client = self._require_client()
        contents = [
            types.Content(
                role=turn.get("role", "user"),
                parts=[types.Part(text=p.get("text", "")) for p in turn.get("parts", [])],
            )
            for turn in history
        ]
        try:
            session = client.chats.create(model=self.text_model, history=contents)
            response = session.send_message(message)
        except Exception as e:
            logging.error(f"Gemini assistant error: {e}")
            raise ProviderError(f"Gemini assistant failed: {e}", cause=e)
        return response.text or ""


# Module-level client shared by services; never crashes import when the key is missing.
gemini_service = GeminiService()
