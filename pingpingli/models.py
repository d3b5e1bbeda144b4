"""Model configuration and oracle transport (OpenRouter, Google AI Studio)."""

import json
import re

import httpx

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
GOOGLE_AI_STUDIO_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Game model via OpenRouter, with Google AI Studio as fallback (provider, model)
GAME_MODEL = "google/gemini-2.5-flash"
GAME_FALLBACK = ("google", "gemini-2.5-flash")

DEFAULT_TIMEOUT = 60.0


def is_error_response(text: str) -> bool:
    """Transport failures come back as bracketed status strings."""
    return not text or text.startswith(("[Error", "[No response"))


def sanitize_speaker_content(content: str) -> str:
    """Sanitize player-typed content to prevent prompt injection."""
    sanitized = content.replace("SYSTEM:", "[SYSTEM]:")
    sanitized = sanitized.replace("INSTRUCTION:", "[INSTRUCTION]:")
    sanitized = sanitized.replace("IGNORE PREVIOUS", "[IGNORE PREVIOUS]")
    sanitized = sanitized.replace("OVERRIDE:", "[OVERRIDE]:")
    sanitized = sanitized.replace('"', "“")
    return sanitized


async def query_model_async(
    client: httpx.AsyncClient,
    api_key: str,
    model: str,
    messages: list[dict],
    max_tokens: int = 1000,
    temperature: float | None = None,
    json_mode: bool = False,
    retries: int = 0,
    cost_accumulator: list[float] | None = None,
) -> str:
    """Query a model via OpenRouter. Returns content or an "[Error: ...]" string."""
    model_name = model.split("/")[-1]
    body: dict = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
    }
    if temperature is not None:
        body["temperature"] = temperature
    if json_mode:
        body["response_format"] = {"type": "json_object"}

    for attempt in range(retries + 1):
        try:
            response = await client.post(
                OPENROUTER_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json=body,
            )
        except (httpx.RequestError, httpx.RemoteProtocolError) as e:
            if attempt < retries:
                continue
            return f"[Error: Connection failed for {model_name}: {e}]"

        if response.status_code != 200:
            if attempt < retries:
                continue
            return f"[Error: HTTP {response.status_code} from {model_name}]"

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            if attempt < retries:
                continue
            return f"[Error: Invalid JSON response from {model_name}]"

        if not isinstance(data, dict):
            if attempt < retries:
                continue
            return f"[Error: Unexpected response shape from {model_name}]"

        if "error" in data:
            if attempt < retries:
                continue
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            return f"[Error: {message}]"

        if not data.get("choices"):
            if attempt < retries:
                continue
            return f"[Error: No response from {model_name}]"

        try:
            message = data["choices"][0].get("message") or {}
            content = message.get("content") or ""
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}")
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            if attempt < retries:
                continue
            return f"[Error: Malformed response from {model_name}: {e}]"

        if not content.strip():
            if attempt < retries:
                continue
            return f"[No response from {model_name} after {retries + 1} attempts]"

        if "<think>" in content:
            content = re.sub(r'<think>.*?</think>', '', content, flags=re.DOTALL).strip()

        if cost_accumulator is not None:
            usage = data.get("usage")
            cost = usage.get("cost") if isinstance(usage, dict) else None
            if isinstance(cost, (int, float)) and not isinstance(cost, bool):
                cost_accumulator.append(float(cost))

        return content

    return f"[Error: Failed to get response from {model_name}]"


async def query_google_ai_studio_async(
    client: httpx.AsyncClient,
    api_key: str,
    model: str,
    messages: list[dict],
    max_tokens: int = 1000,
    temperature: float | None = None,
    json_mode: bool = False,
    retries: int = 0,
) -> str:
    """Query Google AI Studio directly (fallback, or primary with only a Google key)."""
    contents = []
    system_instruction = None

    for msg in messages:
        role = msg["role"]
        content = msg["content"]

        if role == "system":
            system_instruction = content
        elif role == "user":
            contents.append({"role": "user", "parts": [{"text": content}]})
        elif role == "assistant":
            contents.append({"role": "model", "parts": [{"text": content}]})

    generation_config: dict = {"maxOutputTokens": max_tokens}
    if temperature is not None:
        generation_config["temperature"] = temperature
    if json_mode:
        generation_config["responseMimeType"] = "application/json"

    body: dict = {
        "contents": contents,
        "generationConfig": generation_config,
    }
    if system_instruction:
        body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

    url = f"{GOOGLE_AI_STUDIO_URL}/{model}:generateContent?key={api_key}"

    for attempt in range(retries + 1):
        try:
            response = await client.post(url, json=body)

            if response.status_code != 200:
                if attempt < retries:
                    continue
                return f"[Error: HTTP {response.status_code} from AI Studio {model}]"

            data = response.json()

            if "error" in data:
                if attempt < retries:
                    continue
                error = data["error"]
                message = error.get("message", error) if isinstance(error, dict) else error
                return f"[Error: {message}]"

            candidates = data.get("candidates", [])
            if not candidates:
                if attempt < retries:
                    continue
                return f"[Error: No candidates from AI Studio {model}]"

            parts = candidates[0].get("content", {}).get("parts", [])
            if not parts:
                if attempt < retries:
                    continue
                return f"[Error: No content from AI Studio {model}]"

            content = parts[0].get("text") or ""
            if not isinstance(content, str):
                raise TypeError(f"text is {type(content).__name__}")
            if not content.strip():
                if attempt < retries:
                    continue
                return f"[No response from AI Studio {model} after {retries + 1} attempts]"

            return content

        except httpx.TimeoutException:
            if attempt < retries:
                continue
            return f"[Error: Timeout from AI Studio {model}]"
        except httpx.RequestError as e:
            if attempt < retries:
                continue
            return f"[Error: Request failed for AI Studio {model}: {e}]"
        except (json.JSONDecodeError, ValueError):
            if attempt < retries:
                continue
            return f"[Error: Invalid JSON response from AI Studio {model}]"
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            if attempt < retries:
                continue
            return f"[Error: Malformed response from AI Studio {model}: {e}]"

    return f"[Error: Failed to get response from AI Studio {model}]"
