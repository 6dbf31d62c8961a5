"""Local stand-in for the Gemini and OpenRouter APIs.

Point ``gemini.base_url`` at ``http://127.0.0.1:8787/v1beta`` and
``openrouter.base_url`` at ``http://127.0.0.1:8787/api/v1`` to smoke-test the
relay without real credentials (any non-empty key works).
"""
from __future__ import annotations

import json
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Tuple

HOST = "127.0.0.1"
PORT = 8787


def _gemini_prompt(payload: dict[str, Any]) -> tuple[str, bool]:
    prompt = ""
    has_image = False
    for content in payload.get("contents", []) or []:
        for part in content.get("parts", []) or []:
            if "text" in part and not prompt:
                prompt = str(part["text"])
            if "inline_data" in part:
                has_image = True
    return prompt, has_image


class MockProviderHandler(BaseHTTPRequestHandler):
    """Answer generateContent, countTokens and chat/completions calls."""

    server_version = "MockProviders/1.0"

    def log_message(self, format: str, *args: object) -> None:  # noqa: D401 - BaseHTTPRequestHandler signature
        """Silence default logging; output compact messages instead."""

        print(f"[mock-providers] {self.address_string()} - {format % args}")

    def _read_json(self) -> Tuple[dict, str]:
        length_header = self.headers.get("Content-Length")
        length = int(length_header or 0)
        raw = self.rfile.read(length).decode("utf-8") if length else ""
        try:
            payload = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            payload = {}
        return payload, raw

    def _write_json(self, status: int, body: dict) -> None:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_POST(self) -> None:  # noqa: N802 - HTTP method name
        payload, raw = self._read_json()
        if not isinstance(payload, dict):
            payload = {}

        if self.path.endswith(":countTokens"):
            self._write_json(200, {"totalTokens": max(len(raw) // 4, 1)})
            return

        if self.path.endswith(":generateContent"):
            prompt, has_image = _gemini_prompt(payload)
            text = f"[MOCK GEMINI] {prompt}"
            if has_image:
                text += " (with image)"
            self._write_json(
                200,
                {
                    "candidates": [
                        {"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}
                    ]
                },
            )
            return

        if self.path.endswith("/chat/completions"):
            messages = payload.get("messages") or [{}]
            prompt = str(messages[-1].get("content", ""))
            self._write_json(
                200,
                {
                    "id": "mock-1",
                    "object": "chat.completion",
                    "created": 0,
                    "model": str(payload.get("model", "mock")),
                    "choices": [
                        {
                            "index": 0,
                            "finish_reason": "stop",
                            "message": {"role": "assistant", "content": f"[MOCK CHAT] {prompt}"},
                        }
                    ],
                    "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
                },
            )
            return

        self._write_json(404, {"error": {"message": f"unknown path {self.path}"}})


def main() -> None:
    server = HTTPServer((HOST, PORT), MockProviderHandler)
    print(f"Mock providers listening on http://{HOST}:{PORT}")
    print(f"  Gemini base_url:     http://{HOST}:{PORT}/v1beta")
    print(f"  OpenRouter base_url: http://{HOST}:{PORT}/api/v1")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("Stopping mock server...")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
