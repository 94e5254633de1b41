"""
Classification client.

Sends an evidence pack to an OpenAI-compatible chat-completions endpoint
with a strict structured-output schema and returns the raw (untrusted)
component list. Every failure mode surfaces as ClassificationError; there
are no retries here.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..errors import ClassificationError
from ..schemas.classification import ClassificationRequest, response_json_schema
from .evidence import EvidencePack

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a software stack analyst. You receive evidence from a \
source repository: the list of files that were found, the contents of those files \
(dependency manifests are pre-parsed into name/scripts/dependency maps), and the \
full list of dependency names declared anywhere in the repository.

Identify every technology component the repository uses: languages, frameworks, \
libraries, UI component kits, state management, validation, animation, databases, \
caches, CI/CD, tooling, infrastructure and testing.

Rules:
- Return one component for every name in all_dependency_names where feasible.
- type must be one of: language, framework, library, ui_component, \
state_management, validation, animation, database, cache, ci_cd, tooling, infra, \
testing, other.
- confidence is a number between 0 and 1.
- Every component needs at least one evidence entry. evidence.file_path MUST be \
one of found_files; the snippet is a short excerpt from that file.
- version is the declared version string, or null when unknown.
- description is one sentence about what the component does in this repository.
Respond with JSON only."""


class Classifier(Protocol):
    """Anything that can turn an evidence pack into candidate components."""

    def classify(self, pack: EvidencePack) -> List[Any]:
        ...


def build_request(pack: EvidencePack) -> ClassificationRequest:
    return ClassificationRequest(
        found_files=list(pack.found_paths),
        all_dependency_names=list(pack.all_dependency_names),
        file_contents=pack.file_contents(),
    )


def parse_components(content: str) -> List[Any]:
    """Decode the model's message content into the raw component list.

    Raises:
        ClassificationError: if content is not JSON or has no components list
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Classifier returned non-JSON content: {e}", cause=e) from e

    if not isinstance(data, dict) or not isinstance(data.get("components"), list):
        raise ClassificationError(
            "Classifier response does not match schema: expected an object with a "
            "'components' array"
        )
    return data["components"]


class HttpClassifier:
    """Client for an OpenAI-compatible chat-completions classification service."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = client or httpx.Client(timeout=timeout)
        self.headers = headers

    @classmethod
    def from_settings(cls, settings) -> "HttpClassifier":
        return cls(
            base_url=settings.classifier_base_url,
            api_key=settings.classifier_api_key,
            model=settings.classifier_model,
            timeout=settings.classifier_timeout_seconds,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def build_payload(self, pack: EvidencePack) -> Dict[str, Any]:
        request = build_request(pack)
        return {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": request.model_dump_json()},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "detected_components",
                    "strict": True,
                    "schema": response_json_schema(),
                },
            },
        }

    def classify(self, pack: EvidencePack) -> List[Any]:
        """Classify an evidence pack.

        Returns:
            Raw component entries as returned by the service

        Raises:
            ClassificationError: on transport errors, non-2xx responses, or
                missing/malformed content
        """
        payload = self.build_payload(pack)
        logger.info(
            f"Requesting classification from {self.base_url} "
            f"(model={self.model}, files={len(pack.files)}, "
            f"dependencies={len(pack.all_dependency_names)})"
        )

        try:
            response = self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self.headers,
            )
        except httpx.HTTPError as e:
            raise ClassificationError(f"Classification request failed: {e}", cause=e) from e

        if response.status_code >= 300:
            raise ClassificationError(
                f"Classification service returned HTTP {response.status_code}: "
                f"{response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ClassificationError(
                f"Classification service returned a non-JSON body: {e}", cause=e
            ) from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ClassificationError("Classification response has no message content", cause=e) from e

        if not content:
            raise ClassificationError("Classification response has empty message content")

        components = parse_components(content)
        logger.info(f"Classifier proposed {len(components)} components")
        return components
