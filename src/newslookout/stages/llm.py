"""LLM enrichment stages.

One stage per backend:
- `mod_ollama`: local Ollama service (`/api/generate`)
- `mod_chatgpt`: OpenAI-compatible chat completions (`OPENAI_API_KEY`)
- `mod_gemini`: Google Gemini `generateContent` (`GOOGLE_API_KEY`)

For every text part the stage stores a `summary` and `insights` string on the
part, then writes `exec_summary` and `actions_summary` into
`doc.generated_content` from the accumulated part outputs.

A failed call yields "" and the document continues with whatever was
generated. Outputs already present are kept unless `overwrite = true`.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type
import logging
import os

from ..config import AppConfig
from ..errors import ConfigError
from ..pipeline.context import DATA_PROC_SUMMARIZE, Document
from ..utils.network import build_session, http_post_json
from ..utils.text import word_count
from ..utils.urls import make_unique_filename
from .base import Processor

log = logging.getLogger("newslookout.stages.llm")

MIN_ACCEPTABLE_SUMMARY_CHARS = 25
TOKENS_PER_WORD = 1.33
MAX_TOKENS = 8000


def prepare_llama_prompt(system_context: str, user_context: str, input_text: str) -> str:
    return (
        f"<|begin_of_text|><|start_header_id|>system<|end_header_id|>{system_context}"
        f"<|eot_id|><|start_header_id|>user<|end_header_id|>{user_context}"
        f"\n\n{input_text}<|eot_id|> <|start_header_id|>assistant<|end_header_id|>"
    )


def prepare_gemma_prompt(system_context: str, user_context: str, input_text: str) -> str:
    return f"<start_of_turn>user{user_context}{input_text}<end_of_turn><start_of_turn>model"


def build_llm_prompt(model_name: str, system_context: str, user_context: str, input_text: str) -> str:
    """Prompt in the chat template of the model family (llama, gemma, or plain text)."""
    name = model_name.lower()
    if "llama" in name:
        return prepare_llama_prompt(system_context, user_context, input_text)
    if "gemma" in name:
        return prepare_gemma_prompt(system_context, user_context, input_text)
    return f"{system_context}\n{user_context}\n{input_text}"


@dataclass
class LLMOptions:
    overwrite: bool = False
    save_intermediate: bool = False
    llm_service: str = "ollama"
    model_name: str = ""
    svc_url: str = ""
    ollama_svc_base_url: str = ""
    temperature: float = 0.0
    fetch_timeout: int = 120
    max_gen_tokens: int = 8192
    num_context: int = 8192


class LLMBackend:
    """Synchronous text generation against one LLM service."""
    service = "llm"
    default_url = ""
    default_model = ""

    def __init__(self, options: LLMOptions, app_config: AppConfig):
        self.options = options
        self.model_name = options.model_name or self.default_model
        self.svc_url = options.svc_url or self.default_url
        self.timeout = (app_config.connect_timeout, options.fetch_timeout)
        self.session = build_session(app_config.network_parameters(), extra_headers=self.headers())

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def payload(self, system_context: str, user_context: str, text: str) -> Dict[str, Any]:
        raise NotImplementedError

    def parse_response(self, data: Dict[str, Any]) -> str:
        raise NotImplementedError

    def endpoint(self) -> str:
        return self.svc_url

    def generate(self, system_context: str, user_context: str, text: str) -> str:
        payload = self.payload(system_context, user_context, text)
        data = http_post_json(self.session, self.endpoint(), payload, timeout=self.timeout)
        if data is None:
            return ""
        try:
            output = self.parse_response(data)
        except (KeyError, IndexError, TypeError) as e:
            log.error(f"{self.service}: unexpected response shape: {e}")
            return ""
        log.debug(f"{self.service}: generated {len(output)} chars")
        return output or ""


class OllamaBackend(LLMBackend):
    service = "ollama"
    default_url = "http://127.0.0.1:11434/api/generate"
    default_model = "llama3.1"

    def __init__(self, options: LLMOptions, app_config: AppConfig):
        super().__init__(options, app_config)
        if options.ollama_svc_base_url and not options.svc_url:
            self.svc_url = options.ollama_svc_base_url

    def payload(self, system_context: str, user_context: str, text: str) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "taskID": 42,
            "keep_alive": "10m",
            "options": {
                "temperature": self.options.temperature,
                "num_predict": self.options.max_gen_tokens,
                "num_ctx": self.options.num_context,
            },
            "prompt": build_llm_prompt(self.model_name, system_context, user_context, text),
            "stream": False,
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        return data["response"]


class ChatGPTBackend(LLMBackend):
    service = "chatgpt"
    default_url = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o-mini"

    def headers(self) -> Dict[str, str]:
        headers = super().headers()
        headers["Authorization"] = f"Bearer {os.environ.get('OPENAI_API_KEY', '')}"
        return headers

    def payload(self, system_context: str, user_context: str, text: str) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_context},
                {"role": "user", "content": f"{user_context}\n{text}"},
            ],
            "temperature": self.options.temperature,
            "max_completion_tokens": self.options.max_gen_tokens,
            "logprobs": False,
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]


class GeminiBackend(LLMBackend):
    service = "gemini"
    default_url = "https://generativelanguage.googleapis.com/v1beta/models/"
    default_model = "gemini-1.5-flash"

    def endpoint(self) -> str:
        key = os.environ.get("GOOGLE_API_KEY", "")
        return f"{self.svc_url}{self.model_name}:generateContent?key={key}"

    def payload(self, system_context: str, user_context: str, text: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": f"{user_context}\n{text}"}]}],
            "safetySettings": [
                {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"}
            ],
            "generationConfig": {
                "temperature": self.options.temperature,
                "maxOutputTokens": self.options.max_gen_tokens,
            },
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]


BACKENDS: Dict[str, Type[LLMBackend]] = {
    "ollama": OllamaBackend,
    "chatgpt": ChatGPTBackend,
    "gemini": GeminiBackend,
}


def _has_acceptable(value: Any) -> bool:
    return isinstance(value, str) and len(value) > MIN_ACCEPTABLE_SUMMARY_CHARS


class LLMProcessor(Processor):
    """Summaries and insights per text part, then document-level summaries."""
    name = "llm"
    options_cls = LLMOptions
    flag = DATA_PROC_SUMMARIZE
    backend_cls: Type[LLMBackend] = OllamaBackend

    def __init__(self, options, app_config, backend: Optional[LLMBackend] = None):
        super().__init__(options, app_config)
        self.backend = backend or self.make_backend()

    def make_backend(self) -> LLMBackend:
        return self.backend_cls(self.options, self.app_config)

    def generate(self, user_context: str, text: str) -> str:
        return self.backend.generate(self.app_config.system_context, user_context, text)

    def process(self, doc: Document) -> Document:
        summaries, insights = self.process_parts(doc)
        self.summarise_document(doc, summaries, insights)
        return doc

    def process_parts(self, doc: Document):
        summaries: List[str] = []
        insights: List[str] = []
        cfg = self.app_config
        for part in doc.text_parts:
            text = part.get("text", "")
            if not text:
                continue
            if self.options.overwrite or not _has_acceptable(part.get("summary")):
                part["summary"] = self.generate(cfg.summary_part_context, text)
            if self.options.overwrite or not _has_acceptable(part.get("insights")):
                part["insights"] = self.generate(cfg.insights_part_context, text)
            if part["summary"]:
                summaries.append(part["summary"])
            if part["insights"]:
                insights.append(part["insights"])
            if self.options.save_intermediate:
                self.save_intermediate(doc)
        log.info(f"{self.name}: processed {len(doc.text_parts)} parts of '{doc.title}'")
        return summaries, insights

    def summarise_document(self, doc: Document, summaries: List[str], insights: List[str]) -> None:
        header = f"{doc.title}\nPublish Date: {doc.publish_date}\n"
        if summaries and (self.options.overwrite or not doc.generated_content.get("exec_summary")):
            doc.generated_content["exec_summary"] = self.generate(
                self.app_config.summary_exec_context, header + "\n".join(summaries)
            )
        if insights and (self.options.overwrite or not doc.generated_content.get("actions_summary")):
            doc.generated_content["actions_summary"] = self.generate(
                self.app_config.insights_part_context, header + "\n".join(insights)
            )

    def save_intermediate(self, doc: Document) -> None:
        path = doc.filename or os.path.join(self.app_config.data_dir, make_unique_filename(doc, "json"))
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(doc.to_json(indent=2))
        except OSError as e:
            log.error(f"{self.name}: could not save intermediate result to {path}: {e}")


class OllamaProcessor(LLMProcessor):
    name = "mod_ollama"
    backend_cls = OllamaBackend


class ChatGPTProcessor(LLMProcessor):
    name = "mod_chatgpt"
    backend_cls = ChatGPTBackend


class GeminiProcessor(LLMProcessor):
    name = "mod_gemini"
    backend_cls = GeminiBackend


class Summarize(LLMProcessor):
    """`mod_summarize`: backend chosen by `llm_service`.

    Text that fits the context window is summarised in one call; longer text
    goes through the per-part path.
    """
    name = "mod_summarize"

    def make_backend(self) -> LLMBackend:
        service = self.options.llm_service.lower()
        if service not in BACKENDS:
            raise ConfigError(f"{self.name}: unknown llm_service {service!r}, use one of {list(BACKENDS)}")
        return BACKENDS[service](self.options, self.app_config)

    def fits_context(self, doc: Document) -> bool:
        tokens = TOKENS_PER_WORD * (word_count(self.app_config.summary_exec_context) + word_count(doc.text))
        return tokens < min(self.options.num_context, MAX_TOKENS)

    def process(self, doc: Document) -> Document:
        if doc.text and (not doc.text_parts or self.fits_context(doc)):
            if self.options.overwrite or not doc.generated_content.get("exec_summary"):
                header = f"{doc.title}\nPublish Date: {doc.publish_date}\n"
                doc.generated_content["exec_summary"] = self.generate(
                    self.app_config.summary_exec_context, header + doc.text
                )
            return doc
        return super().process(doc)
