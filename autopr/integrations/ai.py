"""
AI Integration Module

Sends generation requests to an OpenAI-compatible HTTP backend and builds the
prompts for PR titles, descriptions, code reviews, conflict suggestions and
commit messages.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from ..models import AIConfig, ChangedFile, CommitInfo, PRType
from ..utils.logger import get_logger

logger = get_logger(__name__)

CHAT_ENDPOINT = "chat/completions"
MAX_CHUNK_TOKENS = 4000
MAX_SUMMARY_TOKENS = 2000


class AIError(Exception):
    """AI backend error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class DiffChunk:
    """Part of a diff small enough for a single request."""

    files: list[str] = field(default_factory=list)
    diff: str = ""


class AIClient:
    """Minimal JSON-over-HTTP client for the AI backend."""

    def __init__(self, config: AIConfig, session: requests.Session | None = None):
        """Initialize client with configuration."""
        if not config.base_url:
            raise AIError("AI base_url is not configured")

        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if config.api_key:
            self.session.headers.update({"Authorization": f"Bearer {config.api_key}"})
        self.logger = get_logger(f"{__name__}.AIClient")

    def call_api(self, endpoint: str, payload: dict[str, Any]) -> Any:
        """
        POST ``payload`` to ``<base_url>/<endpoint>`` and return the decoded JSON.

        Connection errors, timeouts and 5xx responses are retried up to
        ``max_retries`` times. Other HTTP errors fail immediately.

        Raises:
            AIError: If the request ultimately fails or the body is not JSON
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        attempts = self.config.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                self.logger.debug(f"POST {url} (attempt {attempt}/{attempts})")
                response = self.session.post(url, json=payload, timeout=self.config.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                self.logger.warning(f"AI request failed (attempt {attempt}/{attempts}): {e}")
            else:
                if response.status_code >= 500:
                    last_error = AIError(
                        f"AI backend returned {response.status_code}", response.status_code
                    )
                    self.logger.warning(
                        f"AI backend error {response.status_code} (attempt {attempt}/{attempts})"
                    )
                elif response.status_code >= 400:
                    raise AIError(
                        f"AI request rejected with {response.status_code}: {response.text[:200]}",
                        response.status_code,
                    )
                else:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise AIError(f"AI backend returned invalid JSON: {e}")

            if attempt < attempts:
                time.sleep(min(2 ** (attempt - 1), 4))

        raise AIError(f"AI request failed after {attempts} attempts: {last_error}")


def extract_text(data: Any) -> str:
    """Pull the generated text out of a backend response."""
    if isinstance(data, str):
        return data.strip()
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0]
            if isinstance(first, dict):
                message = first.get("message")
                if isinstance(message, dict) and isinstance(message.get("content"), str):
                    return message["content"].strip()
                if isinstance(first.get("text"), str):
                    return first["text"].strip()
        for key in ("content", "text", "result"):
            if isinstance(data.get(key), str):
                return data[key].strip()
    raise AIError("AI response did not contain any text")


def approximate_tokens(text: str) -> int:
    """Rough token estimate: about 1.3 tokens per whitespace-separated word."""
    return math.ceil(len(text.split()) * 1.3)


def chunk_diff(files: list[str], diff: str, max_tokens: int = MAX_CHUNK_TOKENS) -> list[DiffChunk]:
    """Split a unified diff into chunks of at most ``max_tokens`` each.

    Chunks break between lines once the next line would exceed the limit.
    Each chunk lists the files whose ``diff --git`` headers it contains.
    """
    chunks: list[DiffChunk] = []
    current = DiffChunk()
    tokens = 0

    for line in diff.split("\n"):
        line_tokens = approximate_tokens(line)

        if tokens + line_tokens > max_tokens and current.diff:
            chunks.append(current)
            current = DiffChunk()
            tokens = 0

        if line.startswith("diff --git"):
            parts = line.split(" ")
            if len(parts) >= 4 and parts[3].startswith("b/"):
                path = parts[3][2:]
                if path in files and path not in current.files:
                    current.files.append(path)

        current.diff += line + "\n"
        tokens += line_tokens

    if current.diff.strip():
        chunks.append(current)
    return chunks


class AIFeatures:
    """Text generation features built on :class:`AIClient`."""

    def __init__(self, client: AIClient, language: str = "en"):
        self.client = client
        self.language = language

    def _complete(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        temperature: float = 0.7,
    ) -> str:
        if self.language == "ko":
            system_prompt += "\nRespond in Korean."

        payload: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.client.config.model:
            payload["model"] = self.client.config.model

        return extract_text(self.client.call_api(CHAT_ENDPOINT, payload))

    def generate_pr_title(self, files: list[str], diff: str, pr_type: PRType) -> str:
        """Generate a PR title prefixed with ``[TYPE]``."""
        system_prompt = (
            "You generate pull request titles. Keep them under 50 characters, "
            "describe the main change, and avoid generic wording. "
            "Reply with the title only."
        )
        prompt = (
            f"Change type: {pr_type.value}\n"
            f"Changed files: {', '.join(files)}\n\n"
            f"Diff:\n{chunk_diff(files, diff)[0].diff if diff.strip() else '(empty)'}"
        )
        title = self._complete(system_prompt, prompt, max_tokens=100, temperature=0.3)
        title = title.strip().strip('"').splitlines()[0] if title.strip() else title
        return f"[{pr_type.value.upper()}] {title}"

    def generate_pr_description(self, files: list[str], diff: str, template: str = "") -> str:
        """Describe a change set, summarizing across chunks for large diffs."""
        system_prompt = (
            "You are an expert code reviewer and technical writer. Describe the "
            "code changes for a pull request: what changed, why it matters, and "
            "notable implementation details. Use Markdown."
        )
        chunks = chunk_diff(files, diff) or [DiffChunk(files=files, diff=diff)]
        logger.debug(f"Generating description from {len(chunks)} diff chunk(s)")

        descriptions = []
        for chunk in chunks:
            prompt = f"Files: {', '.join(chunk.files or files)}\n\nDiff:\n{chunk.diff}"
            if template:
                prompt += f"\n\nFollow this template:\n{template}"
            descriptions.append(self._complete(system_prompt, prompt, MAX_CHUNK_TOKENS))

        if len(descriptions) == 1:
            return descriptions[0]

        summary_prompt = (
            "Combine these partial pull request descriptions into one coherent "
            "description without repeating information:\n\n" + "\n\n---\n\n".join(descriptions)
        )
        if template:
            summary_prompt += f"\n\nFollow this template:\n{template}"
        return self._complete(
            "You are a technical documentation expert.", summary_prompt, MAX_SUMMARY_TOKENS, 0.5
        )

    def review_code(self, files: list[dict[str, str]]) -> str:
        """Review file contents given as ``{"path": ..., "content": ...}`` dicts."""
        system_prompt = (
            "You are an expert code reviewer. Point out bugs, edge cases, security "
            "issues, performance problems, missing error handling and missing tests. "
            "Suggest specific improvements."
        )
        body = "\n\n".join(f"File: {f['path']}\n```\n{f['content']}\n```" for f in files)
        return self._complete(system_prompt, f"Review these files:\n\n{body}", MAX_CHUNK_TOKENS, 0.6)

    def review_pull_request(self, title: str, files: list[ChangedFile]) -> str:
        """Review a pull request from its title and file patches."""
        system_prompt = (
            "You are an expert code reviewer. Review the pull request diff and "
            "give concise, actionable feedback grouped by file."
        )
        patches = "\n\n".join(
            f"File: {f.filename} ({f.status}, +{f.additions}/-{f.deletions})\n{f.patch or '(binary or too large)'}"
            for f in files
        )
        chunks = chunk_diff([f.filename for f in files], patches)
        reviews = [
            self._complete(system_prompt, f"PR title: {title}\n\n{chunk.diff}", MAX_CHUNK_TOKENS, 0.6)
            for chunk in chunks
        ]
        return "\n\n".join(reviews)

    def suggest_conflict_resolution(
        self,
        conflicts: list[dict[str, str]],
        title: str = "",
        description: str = "",
        changed_files: list[ChangedFile] | None = None,
    ) -> str:
        """Suggest resolutions for ``{"file": ..., "conflict": ...}`` entries."""
        system_prompt = (
            "You are a merge conflict resolution expert. Analyze each conflict, "
            "suggest the most appropriate resolution, explain the reasoning, and "
            "highlight risks."
        )
        body = "\n\n".join(f"File: {c['file']}\n```\n{c['conflict']}\n```" for c in conflicts)
        context = ""
        if title:
            context += f"\nPR Title: {title}\nPR Description: {description}"
        if changed_files:
            context += "\nChanged Files:\n" + "\n".join(
                f"- {f.filename} (additions: {f.additions}, deletions: {f.deletions}, changes: {f.changes})"
                for f in changed_files
            )
        prompt = f"Conflicts:\n\n{body}\n{context}"
        return self._complete(system_prompt, prompt, MAX_CHUNK_TOKENS, 0.4)

    def improve_commit_message(self, message: str, diff: str) -> str:
        """Rewrite a commit message in conventional commit format."""
        system_prompt = (
            "You improve git commit messages. Follow the conventional commit "
            "format, keep the subject under 50 characters, and describe only "
            "changes visible in the diff. Reply with the commit message only."
        )
        first_chunk = chunk_diff([], diff)[0].diff if diff.strip() else "(empty)"
        prompt = f"Current message:\n{message or '(none)'}\n\nDiff:\n{first_chunk}"
        return self._complete(system_prompt, prompt, MAX_CHUNK_TOKENS, 0.4)

    def summarize_daily_commits(self, username: str, commits: list[CommitInfo]) -> str:
        """Summarize a day's commits as a short work report."""
        system_prompt = (
            "You write brief daily work reports from git commit messages. "
            "Group related work and keep it under ten bullet points."
        )
        lines = "\n".join(
            f"- {c.date:%H:%M} {c.message.splitlines()[0] if c.message else ''}" for c in commits
        )
        prompt = f"Commits by {username}:\n{lines}"
        return self._complete(system_prompt, prompt, MAX_SUMMARY_TOKENS, 0.5)


def create_ai_features(config: AIConfig, language: str = "en") -> AIFeatures | None:
    """AI features for ``config``, or None when AI is disabled or unconfigured."""
    if not config.is_usable:
        logger.debug("AI backend disabled or not configured")
        return None
    return AIFeatures(AIClient(config), language)
