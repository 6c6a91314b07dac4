# SPDX-License-Identifier: AGPL-3.0-only

"""
Test doubles shared across test modules.
"""

import json

from common.llm_client import ReasoningServiceError


class ScriptedClient:
    """Reasoning client stand-in that replays a script of responses and failures."""

    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = []

    def call(self, prompt, system_prompt="", image_base64=None, mime_type="image/jpeg"):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "image_base64": image_base64,
            "mime_type": mime_type,
        })
        if not self.script:
            raise AssertionError("ScriptedClient ran out of responses")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, dict):
            step = json.dumps(step, ensure_ascii=False)
        return {"text": step, "tokens": 42}


def http_error(status, body=""):
    return ReasoningServiceError(f"status {status}", status_code=status, body=body)
